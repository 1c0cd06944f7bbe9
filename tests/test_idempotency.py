from datetime import datetime, timezone

import pytest

from vetmed.core.errors import ValidationError
from vetmed.scheduling.idempotency import admin_key, bulk_key, new_prn_nonce, per_animal_key


def test_scheduled_key_shape():
    assert admin_key("a1", "r1", "2024-06-03", 0) == "adm:a1:r1:2024-06-03:0"


def test_scheduled_key_is_deterministic_and_slot_specific():
    assert admin_key("a1", "r1", "2024-06-03", 1) == admin_key("a1", "r1", "2024-06-03", 1)
    assert admin_key("a1", "r1", "2024-06-03", 0) != admin_key("a1", "r1", "2024-06-03", 1)
    assert admin_key("a1", "r1", "2024-06-03", 0) != admin_key("a1", "r1", "2024-06-04", 0)


def test_prn_key_requires_nonce():
    with pytest.raises(ValidationError):
        admin_key("a1", "r1", "2024-06-03")


def test_prn_keys_never_collapse():
    first = admin_key("a1", "r1", "2024-06-03", nonce="nonce-0001")
    second = admin_key("a1", "r1", "2024-06-03", nonce="nonce-0002")
    assert first.endswith(":prn:nonce-0001")
    assert first != second


def test_generated_nonce_is_accepted():
    key = admin_key("a1", "r1", "2024-06-03", nonce=new_prn_nonce())
    assert ":prn:" in key


@pytest.mark.parametrize(
    "args",
    [
        ("a1", "r1", "03/06/2024", 0),
        ("a1", "r1", "2024-06-03", -1),
        ("a1", "r1", "2024-06-03", True),
        ("a:1", "r1", "2024-06-03", 0),
        ("", "r1", "2024-06-03", 0),
    ],
)
def test_rejects_malformed_parts(args):
    with pytest.raises(ValidationError):
        admin_key(*args)


def test_short_nonce_rejected():
    with pytest.raises(ValidationError):
        admin_key("a1", "r1", "2024-06-03", nonce="abc")


def test_bulk_key_ignores_order_and_seconds():
    a = bulk_key("h1", ["b", "a"], "r1", datetime(2024, 6, 3, 12, 5, 10, tzinfo=timezone.utc))
    b = bulk_key("h1", ["a", "b"], "r1", datetime(2024, 6, 3, 12, 5, 59))
    assert a == b
    assert a != bulk_key("h1", ["a", "b"], "r1", datetime(2024, 6, 3, 12, 6, tzinfo=timezone.utc))


def test_per_animal_key():
    assert per_animal_key("bulk:x", "a1") == "bulk:x-a1"
