from vetmed.core.cache import ScopedTTLCache


class Ticker:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_entries_expire_after_ttl():
    tick = Ticker()
    boards = ScopedTTLCache(60, timer=tick)
    boards.put("h1", ("*", "08:05"), {"due": []})

    tick.now = 59.0
    assert boards.get("h1", ("*", "08:05")) == {"due": []}
    tick.now = 60.0
    assert boards.get("h1", ("*", "08:05")) is None


def test_drop_scope_only_touches_one_household():
    boards = ScopedTTLCache(60, timer=Ticker())
    boards.put("h1", "a", 1)
    boards.put("h1", "b", 2)
    boards.put("h2", "a", 3)

    assert boards.drop_scope("h1") == 2
    assert boards.get("h1", "a") is None
    assert boards.get("h2", "a") == 3
    assert boards.drop_scope("h1") == 0


def test_zero_ttl_disables_caching():
    boards = ScopedTTLCache(0, timer=Ticker())
    boards.put("h1", "a", 1)
    assert boards.get("h1", "a") is None
