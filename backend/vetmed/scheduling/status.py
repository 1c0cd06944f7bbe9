"""Module: status.

Lateness classification of a recorded dose against its scheduled instant.

    recorded <= scheduled + cutoff          -> ON_TIME   (boundary inclusive)
    recorded <= scheduled + 2 * cutoff      -> LATE
    otherwise                               -> VERY_LATE

MISSED is never assigned at record time; it is the retrospective outcome of a
slot that has passed the very-late threshold with nothing recorded.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from vetmed.core.errors import ValidationError
from vetmed.scheduling.clock import ensure_utc

VERY_LATE_FACTOR = 2


class AdminStatus(str, Enum):
    ON_TIME = "ON_TIME"
    LATE = "LATE"
    VERY_LATE = "VERY_LATE"
    MISSED = "MISSED"
    PRN = "PRN"


def _check_cutoff(cutoff_mins: int) -> None:
    if cutoff_mins is None or cutoff_mins < 0:
        raise ValidationError("cutoff_mins must be zero or positive")


def very_late_threshold(scheduled_for: datetime, cutoff_mins: int) -> datetime:
    return ensure_utc(scheduled_for) + timedelta(minutes=cutoff_mins * VERY_LATE_FACTOR)


def resolve_status(
    scheduled_for: Optional[datetime],
    recorded_at: datetime,
    cutoff_mins: int,
) -> AdminStatus:
    if scheduled_for is None:
        return AdminStatus.PRN
    _check_cutoff(cutoff_mins)

    scheduled_for = ensure_utc(scheduled_for)
    recorded_at = ensure_utc(recorded_at)

    if recorded_at <= scheduled_for + timedelta(minutes=cutoff_mins):
        return AdminStatus.ON_TIME
    if recorded_at <= very_late_threshold(scheduled_for, cutoff_mins):
        return AdminStatus.LATE
    return AdminStatus.VERY_LATE


def slot_outcome(
    scheduled_for: datetime,
    recorded_at: Optional[datetime],
    now: datetime,
    cutoff_mins: int,
) -> Optional[AdminStatus]:
    """Final status of an expected slot as seen at ``now``.

    Returns None while the slot can still be given without being missed.
    """
    if recorded_at is not None:
        return resolve_status(scheduled_for, recorded_at, cutoff_mins)
    _check_cutoff(cutoff_mins)
    if ensure_utc(now) > very_late_threshold(scheduled_for, cutoff_mins):
        return AdminStatus.MISSED
    return None
