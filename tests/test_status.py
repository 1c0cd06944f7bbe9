from datetime import datetime, timedelta, timezone

import pytest

from vetmed.core.errors import ValidationError
from vetmed.scheduling.status import AdminStatus, resolve_status, slot_outcome, very_late_threshold

SCHEDULED = datetime(2024, 6, 3, 12, 0, tzinfo=timezone.utc)


def after(minutes):
    return SCHEDULED + timedelta(minutes=minutes)


@pytest.mark.parametrize(
    "minutes, expected",
    [
        (-30, AdminStatus.ON_TIME),
        (0, AdminStatus.ON_TIME),
        (239, AdminStatus.ON_TIME),
        (240, AdminStatus.ON_TIME),
        (241, AdminStatus.LATE),
        (480, AdminStatus.LATE),
        (481, AdminStatus.VERY_LATE),
    ],
)
def test_resolve_status_boundaries(minutes, expected):
    assert resolve_status(SCHEDULED, after(minutes), 240) == expected


def test_prn_when_nothing_scheduled():
    assert resolve_status(None, after(10), 240) == AdminStatus.PRN


def test_zero_cutoff():
    assert resolve_status(SCHEDULED, SCHEDULED, 0) == AdminStatus.ON_TIME
    assert resolve_status(SCHEDULED, after(1), 0) == AdminStatus.VERY_LATE


def test_negative_cutoff_rejected():
    with pytest.raises(ValidationError):
        resolve_status(SCHEDULED, after(1), -1)


def test_naive_datetimes_are_utc():
    naive = SCHEDULED.replace(tzinfo=None)
    assert resolve_status(naive, after(300), 240) == AdminStatus.LATE


def test_very_late_threshold():
    assert very_late_threshold(SCHEDULED, 240) == after(480)


def test_slot_outcome():
    assert slot_outcome(SCHEDULED, None, after(480), 240) is None
    assert slot_outcome(SCHEDULED, None, after(481), 240) == AdminStatus.MISSED
    assert slot_outcome(SCHEDULED, after(250), after(1000), 240) == AdminStatus.LATE
