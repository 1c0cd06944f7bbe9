"""Module: reports."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from vetmed.api.v1.routes.deps import get_clock, get_current_user_id, get_db, parse_uuid
from vetmed.core.config import settings
from vetmed.scheduling.status import resolve_status, very_late_threshold
from vetmed.services import reports

router = APIRouter()


class StatusQuery(BaseModel):
    scheduled_for: datetime | None = None
    recorded_at: datetime
    cutoff_mins: int = Field(default=settings.default_cutoff_mins, ge=0)


# Endpoint: stateless lateness check, same rules the recorder applies.
@router.post("/status", summary="Resolve administration status")
def status(payload: StatusQuery):
    result = resolve_status(payload.scheduled_for, payload.recorded_at, payload.cutoff_mins)
    out = {"status": result.value}
    if payload.scheduled_for is not None:
        out["very_late_after"] = very_late_threshold(payload.scheduled_for, payload.cutoff_mins).isoformat()
    return out


@router.get("/compliance", summary="Compliance summary per regimen for a date range")
def compliance(
    household_id: str = Query(...),
    start: date = Query(...),
    end: date = Query(...),
    animal_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    return reports.compliance(
        db,
        parse_uuid(household_id, "household_id"),
        user_id,
        start,
        end,
        clock.now(),
        animal_id=parse_uuid(animal_id, "animal_id") if animal_id else None,
    )


@router.get("/missed", summary="Slots past the very-late threshold with nothing recorded")
def missed(
    household_id: str = Query(...),
    start: date = Query(...),
    end: date = Query(...),
    animal_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    return reports.missed_doses(
        db,
        parse_uuid(household_id, "household_id"),
        user_id,
        start,
        end,
        clock.now(),
        animal_id=parse_uuid(animal_id, "animal_id") if animal_id else None,
    )


@router.post("/missed/reconcile", summary="Record MISSED for every missed slot in the range")
def reconcile(
    household_id: str = Query(...),
    start: date = Query(...),
    end: date = Query(...),
    animal_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    return reports.reconcile_missed(
        db,
        parse_uuid(household_id, "household_id"),
        user_id,
        start,
        end,
        clock.now(),
        animal_id=parse_uuid(animal_id, "animal_id") if animal_id else None,
    )
