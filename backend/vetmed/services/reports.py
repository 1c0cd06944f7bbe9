"""Module: reports.

Compliance summaries and missed-dose reconciliation over a range of local
days. Expected slots come from the schedule model; recorded administrations
are matched to them by scheduled instant, falling back to the nearest
unmatched dose on the same local day.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from vetmed.core.errors import NotFound, ValidationError
from vetmed.db.models.administration import Administration
from vetmed.scheduling.clock import ensure_utc
from vetmed.scheduling.idempotency import admin_key
from vetmed.scheduling.schedule import DueSlot, RegimenSpec, ScheduleType, expected_doses, interval_series
from vetmed.scheduling.slots import local_day, parse_local_date
from vetmed.scheduling.status import AdminStatus, slot_outcome
from vetmed.services import repository as repo
from vetmed.services.audit import audit_entry
from vetmed.services.due import invalidate

logger = logging.getLogger(__name__)

MAX_RANGE_DAYS = 366
MATCH_WINDOW = timedelta(minutes=60)


def _range(start, end) -> tuple[date, date]:
    start_d, end_d = parse_local_date(start), parse_local_date(end)
    if end_d < start_d:
        raise ValidationError("end is before start")
    if (end_d - start_d).days >= MAX_RANGE_DAYS:
        raise ValidationError(f"Range may cover at most {MAX_RANGE_DAYS} days")
    return start_d, end_d


def _administrations(db: Session, household_id, regimen_ids, since: datetime, until: datetime) -> list[Administration]:
    if not regimen_ids:
        return []
    return list(
        db.execute(
            select(Administration).where(
                Administration.household_id == household_id,
                Administration.regimen_id.in_([uuid.UUID(r) for r in regimen_ids]),
                or_(
                    and_(Administration.recorded_at >= since, Administration.recorded_at < until),
                    and_(Administration.scheduled_for >= since, Administration.scheduled_for < until),
                ),
                Administration.deleted_at.is_(None),
            )
        ).scalars().all()
    )


def _match(slots: list[DueSlot], admins: list[Administration], tz_name: str) -> list[tuple[DueSlot, Administration | None]]:
    scheduled = [a for a in admins if a.scheduled_for is not None]
    used: set = set()
    by_instant = {}
    for a in scheduled:
        by_instant.setdefault(ensure_utc(a.scheduled_for), a)

    out = []
    for slot in slots:
        hit = by_instant.get(slot.target_instant)
        if hit is not None and hit.administration_id not in used:
            used.add(hit.administration_id)
            out.append((slot, hit))
            continue
        candidates = [
            a for a in scheduled
            if a.administration_id not in used
            and local_day(a.scheduled_for, tz_name) == slot.local_day
            and abs(ensure_utc(a.scheduled_for) - slot.target_instant) <= MATCH_WINDOW
        ]
        if candidates:
            best = min(candidates, key=lambda a: abs(ensure_utc(a.scheduled_for) - slot.target_instant))
            used.add(best.administration_id)
            out.append((slot, best))
        else:
            out.append((slot, None))
    return out


def _window(start_d: date, end_d: date) -> tuple[datetime, datetime]:
    # wide enough for any zone offset around the local range
    since = datetime.combine(start_d, time.min, tzinfo=timezone.utc) - timedelta(days=2)
    until = datetime.combine(end_d, time.min, tzinfo=timezone.utc) + timedelta(days=3)
    return since, until


def _expected(db: Session, household_id, animal_id, start_d: date, end_d: date):
    regimens = repo.get_active_regimens(db, household_id, animal_id)
    zones = repo.animal_timezones(db, household_id)
    since, until = _window(start_d, end_d)
    per_regimen_admins = defaultdict(list)
    for a in _administrations(db, household_id, [r.regimen_id for r in regimens], since, until):
        per_regimen_admins[str(a.regimen_id)].append(a)
    anchors = repo.last_dose_anchors(db, regimens, before=since)

    expected: dict[str, list[DueSlot]] = {}
    for spec in regimens:
        if spec.is_prn:
            continue
        tz = zones.get(spec.animal_id)
        if tz is None:
            continue
        if spec.schedule_type == ScheduleType.INTERVAL:
            # each dose given in the window moves the next expected instant
            doses = [
                (a.recorded_at, a.scheduled_for)
                for a in per_regimen_admins[spec.regimen_id]
                if a.status != AdminStatus.MISSED.value and ensure_utc(a.recorded_at) >= since
            ]
            expected[spec.regimen_id] = interval_series(
                spec, start_d, end_d, tz, doses, anchor=anchors.get(spec.regimen_id)
            )
        else:
            expected[spec.regimen_id] = expected_doses(spec, start_d, end_d, tz)
    return regimens, zones, expected, per_regimen_admins


def compliance(
    db: Session,
    household_id: uuid.UUID,
    user_id: uuid.UUID,
    start,
    end,
    now: datetime,
    animal_id: uuid.UUID | None = None,
) -> dict:
    """Per-regimen and overall counts of expected, given, late and missed doses."""
    repo.require_member(db, household_id, user_id)
    if animal_id is not None and repo.get_animal(db, household_id, animal_id) is None:
        raise NotFound("Animal not found")
    start_d, end_d = _range(start, end)
    now = ensure_utc(now)

    regimens, zones, expected, per_regimen_admins = _expected(db, household_id, animal_id, start_d, end_d)

    rows = []
    totals = defaultdict(int)
    for spec in regimens:
        counts = {"expected": 0, "given": 0, "on_time": 0, "late": 0, "very_late": 0, "missed": 0, "pending": 0, "prn": 0}
        tz = zones.get(spec.animal_id)
        if spec.is_prn:
            counts["prn"] = sum(
                1 for a in per_regimen_admins[spec.regimen_id]
                if a.scheduled_for is None and start_d <= local_day(a.recorded_at, tz) <= end_d
            )
        else:
            for slot, admin in _match(expected.get(spec.regimen_id, []), per_regimen_admins[spec.regimen_id], tz):
                counts["expected"] += 1
                if admin is not None and admin.status == AdminStatus.MISSED.value:
                    counts["missed"] += 1
                    continue
                outcome = slot_outcome(
                    slot.target_instant,
                    ensure_utc(admin.recorded_at) if admin is not None else None,
                    now,
                    spec.cutoff_mins,
                )
                if outcome is None:
                    counts["pending"] += 1
                elif outcome == AdminStatus.MISSED:
                    counts["missed"] += 1
                else:
                    counts["given"] += 1
                    counts[outcome.value.lower()] += 1

        for k, v in counts.items():
            totals[k] += v
        rows.append({
            "regimen_id": spec.regimen_id,
            "animal_id": spec.animal_id,
            "medication_name": spec.medication_name,
            "schedule_type": spec.schedule_type.value,
            **counts,
            **_rates(counts),
        })

    return {
        "household_id": str(household_id),
        "animal_id": str(animal_id) if animal_id else None,
        "start": start_d.isoformat(),
        "end": end_d.isoformat(),
        "regimens": rows,
        "totals": {**totals, **_rates(totals)},
    }


def _rates(counts) -> dict:
    decided = counts["given"] + counts["missed"]
    return {
        "adherence_rate": round(counts["given"] / decided, 4) if decided else None,
        "on_time_rate": round(counts["on_time"] / counts["given"], 4) if counts["given"] else None,
    }


def missed_doses(
    db: Session,
    household_id: uuid.UUID,
    user_id: uuid.UUID,
    start,
    end,
    now: datetime,
    animal_id: uuid.UUID | None = None,
) -> list[dict]:
    """Slots past their very-late threshold with no administration recorded."""
    repo.require_member(db, household_id, user_id)
    start_d, end_d = _range(start, end)
    now = ensure_utc(now)

    regimens, zones, expected, per_regimen_admins = _expected(db, household_id, animal_id, start_d, end_d)

    names = {r.regimen_id: r for r in regimens}
    out = []
    for regimen_id, slots in expected.items():
        spec: RegimenSpec = names[regimen_id]
        tz = zones.get(spec.animal_id)
        for slot, admin in _match(slots, per_regimen_admins[regimen_id], tz):
            if admin is not None:
                continue
            if slot_outcome(slot.target_instant, None, now, spec.cutoff_mins) != AdminStatus.MISSED:
                continue
            out.append({
                "regimen_id": regimen_id,
                "animal_id": spec.animal_id,
                "medication_name": spec.medication_name,
                "target_instant": slot.target_instant.isoformat(),
                "local_day": slot.local_day.isoformat(),
                "slot_index": slot.slot_index,
                "idempotency_key": admin_key(spec.animal_id, regimen_id, slot.local_day.isoformat(), slot.slot_index),
            })
    out.sort(key=lambda m: (m["target_instant"], m["medication_name"].lower()))
    return out


def reconcile_missed(
    db: Session,
    household_id: uuid.UUID,
    user_id: uuid.UUID,
    start,
    end,
    now: datetime,
    animal_id: uuid.UUID | None = None,
) -> dict:
    """Persist a MISSED administration for every missed slot in the range.

    Rows use the slot's idempotency key, so reconciling twice adds nothing.
    """
    repo.require_member(db, household_id, user_id, write=True)
    missed = missed_doses(db, household_id, user_id, start, end, now, animal_id)

    created = 0
    for m in missed:
        if repo.get_administration_by_key(db, m["idempotency_key"]) is not None:
            continue
        admin = Administration(
            administration_id=uuid.uuid4(),
            household_id=household_id,
            animal_id=uuid.UUID(m["animal_id"]),
            regimen_id=uuid.UUID(m["regimen_id"]),
            caregiver_id=user_id,
            scheduled_for=datetime.fromisoformat(m["target_instant"]),
            recorded_at=ensure_utc(now),
            status=AdminStatus.MISSED.value,
            idempotency_key=m["idempotency_key"],
            condition_tags=[],
            created_at=now,
            updated_at=now,
        )
        _, was_created = repo.insert_administration_if_absent(
            db,
            admin,
            audit_entry(user_id, household_id, "administration.missed", "administration", admin.administration_id, {"slot": m["target_instant"]}),
        )
        created += int(was_created)

    if created:
        invalidate(household_id)
    logger.info("missed reconciliation household=%s found=%d created=%d", household_id, len(missed), created)
    return {"missed": missed, "created": created}
