"""Module: classifier.

Groups a household's regimens into what is due now, due later today, and PRN.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from vetmed.scheduling.clock import ensure_utc
from vetmed.scheduling.idempotency import admin_key
from vetmed.scheduling.schedule import DueSlot, RegimenSpec, expected_doses
from vetmed.scheduling.slots import local_day

DEFAULT_GRACE_MINS = 5


@dataclass
class DueItem:
    regimen_id: str
    animal_id: str
    medication_name: str
    section: str
    target_instant: Optional[datetime] = None
    cutoff_instant: Optional[datetime] = None
    local_day: Optional[date] = None
    slot_index: Optional[int] = None
    is_overdue: bool = False
    is_past_cutoff: bool = False
    minutes_until_due: int = 0
    is_prn: bool = False
    high_risk: bool = False
    requires_cosign: bool = False
    dose: Optional[str] = None
    idempotency_key: Optional[str] = None

    def to_dict(self) -> dict:
        d = asdict(self)
        for k in ("target_instant", "cutoff_instant"):
            if d[k] is not None:
                d[k] = d[k].isoformat()
        if d["local_day"] is not None:
            d["local_day"] = d["local_day"].isoformat()
        return d


@dataclass
class DueBoard:
    due: List[DueItem] = field(default_factory=list)
    later: List[DueItem] = field(default_factory=list)
    prn: List[DueItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "due": [i.to_dict() for i in self.due],
            "later": [i.to_dict() for i in self.later],
            "prn": [i.to_dict() for i in self.prn],
        }


def minutes_until(target: datetime, now: datetime) -> int:
    return round((target - now).total_seconds() / 60)


def _slot_item(regimen: RegimenSpec, slot: DueSlot, section: str, now: datetime, grace: timedelta) -> DueItem:
    return DueItem(
        regimen_id=regimen.regimen_id,
        animal_id=regimen.animal_id,
        medication_name=regimen.medication_name,
        section=section,
        target_instant=slot.target_instant,
        cutoff_instant=slot.cutoff_instant,
        local_day=slot.local_day,
        slot_index=slot.slot_index,
        is_overdue=now > slot.target_instant + grace,
        is_past_cutoff=now > slot.cutoff_instant,
        minutes_until_due=minutes_until(slot.target_instant, now),
        high_risk=regimen.high_risk,
        requires_cosign=regimen.requires_cosign or regimen.high_risk,
        dose=regimen.dose,
        idempotency_key=admin_key(regimen.animal_id, regimen.regimen_id, slot.local_day.isoformat(), slot.slot_index),
    )


def _prn_item(regimen: RegimenSpec) -> DueItem:
    return DueItem(
        regimen_id=regimen.regimen_id,
        animal_id=regimen.animal_id,
        medication_name=regimen.medication_name,
        section="prn",
        is_prn=True,
        high_risk=regimen.high_risk,
        requires_cosign=regimen.requires_cosign or regimen.high_risk,
        dose=regimen.dose,
    )


def classify(
    regimens: Iterable[RegimenSpec],
    now: datetime,
    animal_timezones: Mapping[str, str],
    recorded: Iterable[Tuple[str, datetime]] = (),
    anchors: Optional[Mapping[str, datetime]] = None,
    default_timezone: str = "America/New_York",
    grace_mins: int = DEFAULT_GRACE_MINS,
) -> DueBoard:
    """Classify each active regimen's slots relative to ``now``.

    ``recorded`` holds ``(regimen_id, scheduled_for)`` pairs already given;
    those slots drop off the board. ``anchors`` maps INTERVAL regimen ids to
    their last dose instant.
    """
    now = ensure_utc(now)
    grace = timedelta(minutes=grace_mins)
    done: Set[Tuple[str, datetime]] = {(str(r), ensure_utc(at)) for r, at in recorded}
    anchors = anchors or {}
    board = DueBoard()

    for regimen in regimens:
        if not regimen.active:
            continue
        if regimen.is_prn:
            board.prn.append(_prn_item(regimen))
            continue

        tz = animal_timezones.get(regimen.animal_id) or default_timezone
        today = local_day(now, tz)
        # previous local day too, so late-night doses still inside cutoff show after midnight
        slots = expected_doses(regimen, today - timedelta(days=1), today, tz, anchor=anchors.get(regimen.regimen_id))

        for slot in slots:
            if (regimen.regimen_id, slot.target_instant) in done:
                continue
            if slot.target_instant <= now:
                if slot.local_day < today and now > slot.cutoff_instant:
                    continue
                board.due.append(_slot_item(regimen, slot, "due", now, grace))
            elif slot.local_day == today:
                board.later.append(_slot_item(regimen, slot, "later", now, grace))

    board.due.sort(key=lambda i: (not i.is_overdue, i.target_instant, i.medication_name.lower()))
    board.later.sort(key=lambda i: (i.target_instant, i.medication_name.lower()))
    board.prn.sort(key=lambda i: (i.medication_name.lower(), i.animal_id))
    return board


def group_by_animal(board: DueBoard) -> Dict[str, DueBoard]:
    out: Dict[str, DueBoard] = {}
    for section in ("due", "later", "prn"):
        for item in getattr(board, section):
            getattr(out.setdefault(item.animal_id, DueBoard()), section).append(item)
    return out
