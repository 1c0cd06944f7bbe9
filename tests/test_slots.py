from datetime import date, datetime, timezone

import pytest

from vetmed.core.errors import ValidationError
from vetmed.scheduling.slots import expand, is_valid_timezone, iter_days, local_day, local_wall_time, parse_hhmm, parse_local_date

NY = "America/New_York"


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def test_expand_plain_day_new_york():
    out = expand(["08:00", "20:00"], "2024-06-03", NY)
    assert out == [utc(2024, 6, 3, 12, 0), utc(2024, 6, 4, 0, 0)]
    assert all(i.tzinfo == timezone.utc for i in out)


def test_expand_keeps_input_order():
    out = expand(["20:00", "08:00"], "2024-06-03", NY)
    assert out[0] > out[1]


def test_spring_forward_gap_resolves_to_transition():
    # 02:30 does not exist on 2024-03-10; clocks jump 02:00 EST -> 03:00 EDT
    (instant,) = expand(["02:30"], "2024-03-10", NY)
    assert instant == utc(2024, 3, 10, 7, 0)
    assert local_wall_time(instant, NY) == "03:00"


def test_fall_back_overlap_uses_earlier_occurrence():
    # 01:30 happens twice on 2024-11-03; the EDT one comes first
    (instant,) = expand(["01:30"], "2024-11-03", NY)
    assert instant == utc(2024, 11, 3, 5, 30)


@pytest.mark.parametrize(
    "first, last, before, after",
    [
        # CET before the change, CEST after
        (date(2024, 3, 29), date(2024, 4, 1), utc(2024, 3, 29, 7, 0), utc(2024, 3, 31, 6, 0)),
        # CEST before, CET after
        (date(2024, 10, 26), date(2024, 10, 29), utc(2024, 10, 26, 6, 0), utc(2024, 10, 28, 7, 0)),
    ],
)
def test_amsterdam_wall_times_survive_dst_change(first, last, before, after):
    instants = []
    for day in iter_days(first, last):
        instants.extend(expand(["08:00", "18:00"], day, "Europe/Amsterdam"))

    assert len(instants) == 8
    assert [local_wall_time(i, "Europe/Amsterdam") for i in instants] == ["08:00", "18:00"] * 4
    assert instants[0] == before
    assert instants[4] == after


def test_amsterdam_fall_back_overlap_uses_summer_time():
    # 02:30 happens twice on 2024-10-27; CEST (UTC+2) first
    (instant,) = expand(["02:30"], "2024-10-27", "Europe/Amsterdam")
    assert instant == utc(2024, 10, 27, 0, 30)
    assert local_wall_time(instant, "Europe/Amsterdam") == "02:30"


def test_same_arguments_same_instants():
    assert expand(["07:15"], "2024-01-15", "Asia/Kolkata") == expand(["07:15"], "2024-01-15", "Asia/Kolkata")


@pytest.mark.parametrize("bad", ["24:00", "8:00", "ab:cd", "12:60", "", None])
def test_invalid_local_time(bad):
    with pytest.raises(ValidationError):
        parse_hhmm(bad)


def test_invalid_timezone():
    with pytest.raises(ValidationError):
        expand(["08:00"], "2024-06-03", "Mars/Olympus_Mons")
    assert not is_valid_timezone("Mars/Olympus_Mons")
    assert not is_valid_timezone("")
    assert is_valid_timezone("Europe/Amsterdam")


def test_invalid_date():
    with pytest.raises(ValidationError):
        expand(["08:00"], "2024-13-01", NY)
    with pytest.raises(ValidationError):
        parse_local_date(datetime(2024, 6, 3, 8, 0))


def test_local_day_crosses_midnight():
    # 03:30Z on the 4th is still the 3rd in New York
    assert local_day(utc(2024, 6, 4, 3, 30), NY) == date(2024, 6, 3)
    assert local_day(datetime(2024, 6, 4, 3, 30), NY) == date(2024, 6, 3)
