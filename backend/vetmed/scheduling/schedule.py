"""Module: schedule.

Expands a regimen's schedule into the dose instants expected over a range of
local calendar days. Schedule types are a tagged enum dispatched in
``expected_doses``:

* FIXED     -- every day, each ``times_local`` entry.
* PRN       -- nothing expected; doses are recorded on demand.
* INTERVAL  -- every ``interval_hours`` from an anchor (last dose, or the
               first time on ``start_date`` when nothing was given yet).
* TAPER     -- ``taper_steps`` is an ordered list of date ranges, each with
               its own ``times_local``; a day uses the step covering it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from vetmed.core.errors import ValidationError
from vetmed.scheduling.clock import ensure_utc
from vetmed.scheduling.slots import (
    expand,
    get_zone,
    iter_days,
    local_day,
    parse_hhmm,
    parse_local_date,
    resolve_local,
)


class ScheduleType(str, Enum):
    FIXED = "FIXED"
    PRN = "PRN"
    INTERVAL = "INTERVAL"
    TAPER = "TAPER"

    @classmethod
    def parse(cls, value) -> "ScheduleType":
        try:
            return cls(str(value).upper())
        except ValueError:
            raise ValidationError(f"Unknown schedule type {value!r}")


@dataclass(frozen=True)
class DueSlot:
    regimen_id: str
    animal_id: str
    target_instant: datetime
    cutoff_instant: datetime
    local_day: date
    slot_index: int


@dataclass(frozen=True)
class TaperStep:
    start_date: date
    end_date: Optional[date]
    times_local: tuple
    dose: Optional[str] = None

    def covers(self, day: date) -> bool:
        return self.start_date <= day and (self.end_date is None or day <= self.end_date)


@dataclass
class RegimenSpec:
    """Plain view of a regimen, detached from the ORM."""

    regimen_id: str
    animal_id: str
    schedule_type: ScheduleType
    times_local: List[str] = field(default_factory=list)
    cutoff_mins: int = 240
    active: bool = True
    medication_name: str = ""
    interval_hours: Optional[int] = None
    taper_steps: List[TaperStep] = field(default_factory=list)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    high_risk: bool = False
    requires_cosign: bool = False
    dose: Optional[str] = None

    @classmethod
    def from_model(cls, regimen, medication_name: str = "") -> "RegimenSpec":
        return cls(
            regimen_id=str(regimen.regimen_id),
            animal_id=str(regimen.animal_id),
            schedule_type=ScheduleType.parse(regimen.schedule_type),
            times_local=list(regimen.times_local or []),
            cutoff_mins=regimen.cutoff_mins,
            active=bool(regimen.active) and getattr(regimen, "deleted_at", None) is None,
            medication_name=medication_name,
            interval_hours=regimen.interval_hours,
            taper_steps=parse_taper_steps(regimen.taper_steps),
            start_date=regimen.start_date,
            end_date=regimen.end_date,
            high_risk=bool(regimen.high_risk),
            requires_cosign=bool(regimen.requires_cosign),
            dose=regimen.dose,
        )

    @property
    def is_prn(self) -> bool:
        return self.schedule_type == ScheduleType.PRN


def parse_taper_steps(raw) -> List[TaperStep]:
    if not raw:
        return []
    steps = []
    for i, entry in enumerate(raw):
        if isinstance(entry, TaperStep):
            steps.append(entry)
            continue
        try:
            start = parse_local_date(entry["start_date"])
            end = parse_local_date(entry["end_date"]) if entry.get("end_date") else None
            times = tuple(entry.get("times_local") or ())
        except (KeyError, TypeError, AttributeError):
            raise ValidationError(f"Taper step {i} is malformed")
        steps.append(TaperStep(start, end, times, entry.get("dose")))
    return steps


def validate_schedule(
    schedule_type: ScheduleType,
    times_local: List[str],
    interval_hours: Optional[int] = None,
    taper_steps: Optional[List[TaperStep]] = None,
    cutoff_mins: int = 240,
) -> List[str]:
    """Check the per-type invariants; returns the normalised times_local."""
    if cutoff_mins is None or cutoff_mins < 0:
        raise ValidationError("cutoff_mins must be zero or positive")

    if schedule_type == ScheduleType.PRN:
        return []

    for t in times_local or []:
        parse_hhmm(t)
    if len(set(times_local or [])) != len(times_local or []):
        raise ValidationError("times_local contains duplicates")

    if schedule_type == ScheduleType.FIXED and not times_local:
        raise ValidationError("FIXED regimens need at least one time in times_local")

    if schedule_type == ScheduleType.INTERVAL and (not interval_hours or interval_hours <= 0):
        raise ValidationError("INTERVAL regimens need a positive interval_hours")

    if schedule_type == ScheduleType.TAPER:
        steps = taper_steps or []
        if not steps and not times_local:
            raise ValidationError("TAPER regimens need taper_steps or times_local")
        prev_end = None
        for i, step in enumerate(steps):
            if not step.times_local:
                raise ValidationError(f"Taper step {i} has no times_local")
            for t in step.times_local:
                parse_hhmm(t)
            if step.end_date is not None and step.end_date < step.start_date:
                raise ValidationError(f"Taper step {i} ends before it starts")
            if i > 0 and (prev_end is None or step.start_date <= prev_end):
                raise ValidationError(f"Taper step {i} overlaps the previous step")
            prev_end = step.end_date

    return list(times_local or [])


def _in_regimen_window(regimen: RegimenSpec, day: date) -> bool:
    if regimen.start_date and day < regimen.start_date:
        return False
    if regimen.end_date and day > regimen.end_date:
        return False
    return True


def _slots_for_times(regimen: RegimenSpec, times: List[str], day: date, timezone_name: str) -> List[DueSlot]:
    cutoff = timedelta(minutes=regimen.cutoff_mins)
    return [
        DueSlot(
            regimen_id=regimen.regimen_id,
            animal_id=regimen.animal_id,
            target_instant=instant,
            cutoff_instant=instant + cutoff,
            local_day=day,
            slot_index=i,
        )
        for i, instant in enumerate(expand(times, day, timezone_name))
    ]


def _fixed(regimen, start, end, timezone_name):
    out = []
    for day in iter_days(start, end):
        if _in_regimen_window(regimen, day):
            out.extend(_slots_for_times(regimen, regimen.times_local, day, timezone_name))
    return out


def _taper(regimen, start, end, timezone_name):
    if not regimen.taper_steps:
        return _fixed(regimen, start, end, timezone_name)
    out = []
    for day in iter_days(start, end):
        if not _in_regimen_window(regimen, day):
            continue
        step = next((s for s in regimen.taper_steps if s.covers(day)), None)
        if step is not None:
            out.extend(_slots_for_times(regimen, list(step.times_local), day, timezone_name))
    return out


def _interval(regimen, start, end, timezone_name, anchor):
    return interval_series(regimen, start, end, timezone_name, anchor=anchor)


def interval_series(
    regimen: RegimenSpec,
    range_start,
    range_end,
    timezone_name: str,
    doses: Iterable[Tuple[datetime, Optional[datetime]]] = (),
    anchor: Optional[datetime] = None,
) -> List[DueSlot]:
    """INTERVAL slots over a range, re-anchored on every dose given in it.

    ``anchor`` is the last dose before the range. ``doses`` are
    ``(recorded_at, scheduled_for)`` pairs inside it. A slot stays in the
    series when it fell due before the dose was given, or is the slot the dose
    was recorded against; the next slot is one interval after the dose.
    """
    start = parse_local_date(range_start)
    end = parse_local_date(range_end)
    tz = get_zone(timezone_name)
    step = timedelta(hours=regimen.interval_hours)
    cutoff = timedelta(minutes=regimen.cutoff_mins)

    if anchor is not None:
        current = ensure_utc(anchor) + step
    else:
        first_day = regimen.start_date or start
        first_time = parse_hhmm(regimen.times_local[0]) if regimen.times_local else time(0, 0)
        current = resolve_local(first_day, first_time, tz)

    given = sorted(
        ((ensure_utc(at), ensure_utc(slot) if slot else None) for at, slot in doses),
        key=lambda d: d[0],
    )

    # skip whole intervals that end before the window opens
    window_open = resolve_local(start, time(0, 0), tz)
    bound = min([window_open] + [max(at, slot or at) for at, slot in given[:1]])
    if current < bound:
        current = current + ((bound - current) // step) * step

    out = []

    def emit_until(limit):
        nonlocal current
        while (limit is None or current <= limit) and local_day(current, timezone_name) <= end:
            day = local_day(current, timezone_name)
            if day >= start and _in_regimen_window(regimen, day):
                out.append(
                    DueSlot(
                        regimen_id=regimen.regimen_id,
                        animal_id=regimen.animal_id,
                        target_instant=current,
                        cutoff_instant=current + cutoff,
                        local_day=day,
                        slot_index=_ordinal_in_day(current, step, timezone_name),
                    )
                )
            current = current + step

    for at, slot in given:
        emit_until(max(at, slot or at))
        current = at + step
    emit_until(None)
    return out


def _ordinal_in_day(instant: datetime, step: timedelta, timezone_name: str) -> int:
    # ordinal along the series grid; unchanged when the series is re-anchored mid-day
    day = local_day(instant, timezone_name)
    n = 0
    prev = instant - step
    while local_day(prev, timezone_name) == day:
        n += 1
        prev = prev - step
    return n


def expected_doses(
    regimen: RegimenSpec,
    range_start,
    range_end,
    timezone_name: str,
    anchor: Optional[datetime] = None,
) -> List[DueSlot]:
    """Expected dose slots for local days ``range_start``..``range_end`` inclusive.

    ``anchor`` is the last dose instant and only matters for INTERVAL regimens.
    Inactive regimens expect nothing.
    """
    start = parse_local_date(range_start)
    end = parse_local_date(range_end)
    if end < start:
        raise ValidationError("range_end is before range_start")
    if not regimen.active:
        return []

    kind = regimen.schedule_type
    if kind == ScheduleType.PRN:
        return []
    if kind == ScheduleType.FIXED:
        return _fixed(regimen, start, end, timezone_name)
    if kind == ScheduleType.TAPER:
        return _taper(regimen, start, end, timezone_name)
    if kind == ScheduleType.INTERVAL:
        if not regimen.interval_hours or regimen.interval_hours <= 0:
            raise ValidationError("INTERVAL regimens need a positive interval_hours")
        return _interval(regimen, start, end, timezone_name, anchor)
    raise ValidationError(f"Unknown schedule type {kind!r}")
