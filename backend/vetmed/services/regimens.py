"""Module: regimens."""

from __future__ import annotations

import logging
import uuid
from datetime import date, timedelta

from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from vetmed.core.config import settings
from vetmed.core.errors import NotFound, ValidationError
from vetmed.db.models.medication import Medication
from vetmed.db.models.regimen import Regimen
from vetmed.scheduling.schedule import RegimenSpec, ScheduleType, expected_doses, parse_taper_steps, validate_schedule
from vetmed.scheduling.slots import local_wall_time, parse_local_date
from vetmed.services import repository as repo
from vetmed.services.audit import audit_entry
from vetmed.services.due import invalidate

logger = logging.getLogger(__name__)

MAX_SLOT_RANGE_DAYS = 62


class TaperStepIn(BaseModel):
    start_date: date
    end_date: date | None = None
    times_local: list[str]
    dose: str | None = None


class RegimenCreatePayload(BaseModel):
    household_id: uuid.UUID
    animal_id: uuid.UUID
    medication_id: uuid.UUID
    schedule_type: str
    times_local: list[str] = Field(default_factory=list)
    interval_hours: int | None = None
    taper_steps: list[TaperStepIn] | None = None
    start_date: date
    end_date: date | None = None
    name: str | None = None
    instructions: str | None = None
    prn_reason: str | None = None
    max_daily_doses: int | None = None
    cutoff_mins: int | None = None
    high_risk: bool = False
    requires_cosign: bool = False
    dose: str | None = None
    route: str | None = None


def regimen_to_dict(r: Regimen, medication: Medication | None = None) -> dict:
    return {
        "id": str(r.regimen_id),
        "animal_id": str(r.animal_id),
        "medication_id": str(r.medication_id),
        "medication_name": medication.display_name if medication else None,
        "name": r.name,
        "instructions": r.instructions,
        "schedule_type": r.schedule_type,
        "times_local": list(r.times_local or []),
        "interval_hours": r.interval_hours,
        "taper_steps": r.taper_steps,
        "start_date": r.start_date.isoformat() if r.start_date else None,
        "end_date": r.end_date.isoformat() if r.end_date else None,
        "prn_reason": r.prn_reason,
        "max_daily_doses": r.max_daily_doses,
        "cutoff_mins": r.cutoff_mins,
        "high_risk": r.high_risk,
        "requires_cosign": r.requires_cosign,
        "active": r.active,
        "dose": r.dose,
        "route": r.route,
    }


def create_regimen(db: Session, payload: RegimenCreatePayload, user_id: uuid.UUID) -> Regimen:
    repo.require_member(db, payload.household_id, user_id, write=True)
    if repo.get_animal(db, payload.household_id, payload.animal_id) is None:
        raise ValidationError("Animal not found in this household")
    medication = db.get(Medication, payload.medication_id)
    if medication is None:
        raise ValidationError("Medication not found")

    kind = ScheduleType.parse(payload.schedule_type)
    cutoff = settings.default_cutoff_mins if payload.cutoff_mins is None else payload.cutoff_mins
    raw_steps = [s.model_dump(mode="json") for s in payload.taper_steps] if payload.taper_steps else None
    times = validate_schedule(kind, payload.times_local, payload.interval_hours, parse_taper_steps(raw_steps), cutoff)
    if payload.end_date and payload.end_date < payload.start_date:
        raise ValidationError("end_date is before start_date")
    if payload.max_daily_doses is not None and payload.max_daily_doses <= 0:
        raise ValidationError("max_daily_doses must be positive")

    regimen = Regimen(
        regimen_id=uuid.uuid4(),
        animal_id=payload.animal_id,
        medication_id=medication.medication_id,
        name=payload.name,
        instructions=payload.instructions,
        schedule_type=kind.value,
        times_local=times,
        interval_hours=payload.interval_hours if kind == ScheduleType.INTERVAL else None,
        taper_steps=raw_steps if kind == ScheduleType.TAPER else None,
        start_date=payload.start_date,
        end_date=payload.end_date,
        prn_reason=payload.prn_reason,
        max_daily_doses=payload.max_daily_doses,
        cutoff_mins=cutoff,
        high_risk=payload.high_risk,
        requires_cosign=payload.requires_cosign,
        active=True,
        dose=payload.dose,
        route=payload.route or medication.route,
    )
    db.add(regimen)
    db.add(audit_entry(user_id, payload.household_id, "regimen.created", "regimen", regimen.regimen_id, {"schedule_type": kind.value}))
    db.commit()
    db.refresh(regimen)
    invalidate(payload.household_id)
    logger.info("created regimen=%s type=%s animal=%s", regimen.regimen_id, kind.value, regimen.animal_id)
    return regimen


def set_active(db: Session, household_id: uuid.UUID, regimen_id: uuid.UUID, user_id: uuid.UUID, active: bool) -> Regimen:
    repo.require_member(db, household_id, user_id, write=True)
    regimen = repo.get_household_regimen(db, household_id, regimen_id)
    if regimen.active != active:
        regimen.active = active
        action = "regimen.activated" if active else "regimen.deactivated"
        db.add(audit_entry(user_id, household_id, action, "regimen", regimen.regimen_id))
        db.commit()
        db.refresh(regimen)
    invalidate(household_id)
    return regimen


def slots_for_range(db: Session, household_id: uuid.UUID, regimen_id: uuid.UUID, user_id: uuid.UUID, start, end) -> list[dict]:
    repo.require_member(db, household_id, user_id)
    regimen = repo.get_household_regimen(db, household_id, regimen_id)
    start_d, end_d = parse_local_date(start), parse_local_date(end)
    if end_d - start_d > timedelta(days=MAX_SLOT_RANGE_DAYS):
        raise ValidationError(f"Range may cover at most {MAX_SLOT_RANGE_DAYS} days")

    animal = repo.get_animal(db, household_id, regimen.animal_id)
    if animal is None:
        raise NotFound("Animal not found")
    tz_name = repo.timezone_for_animal(db, animal)
    spec = RegimenSpec.from_model(regimen)
    anchors = repo.last_dose_anchors(db, [spec])
    return [
        {
            "target_instant": s.target_instant.isoformat(),
            "cutoff_instant": s.cutoff_instant.isoformat(),
            "local_day": s.local_day.isoformat(),
            "local_time": local_wall_time(s.target_instant, tz_name),
            "slot_index": s.slot_index,
        }
        for s in expected_doses(spec, start_d, end_d, tz_name, anchor=anchors.get(spec.regimen_id))
    ]
