"""Module: regimens."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from vetmed.api.v1.routes.deps import get_clock, get_current_user_id, get_db, parse_uuid
from vetmed.services import repository as repo
from vetmed.services.due import list_due
from vetmed.services.regimens import (
    RegimenCreatePayload,
    create_regimen,
    regimen_to_dict,
    set_active,
    slots_for_range,
)

router = APIRouter()


@router.get("/due", summary="Due now / later today / PRN for a household or animal")
def due(
    household_id: str = Query(...),
    animal_id: str | None = Query(default=None),
    at: datetime | None = Query(default=None, description="Evaluate at this instant instead of now"),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    hid = parse_uuid(household_id, "household_id")
    aid = parse_uuid(animal_id, "animal_id") if animal_id else None
    return list_due(db, hid, user_id, at or clock.now(), aid)


@router.get("", summary="List regimens of a household")
def list_regimens(
    household_id: str = Query(...),
    animal_id: str | None = Query(default=None),
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    hid = parse_uuid(household_id, "household_id")
    aid = parse_uuid(animal_id, "animal_id") if animal_id else None
    repo.require_member(db, hid, user_id)
    rows = repo.list_regimens(db, hid, aid, active_only=not include_inactive)
    return [regimen_to_dict(r, m) for r, m in rows]


@router.post("", status_code=201, summary="Create regimen")
def create(
    payload: RegimenCreatePayload,
    db: Session = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    return regimen_to_dict(create_regimen(db, payload, user_id))


@router.post("/{regimen_id}/deactivate", summary="Stop scheduling a regimen")
def deactivate(
    regimen_id: str,
    household_id: str = Query(...),
    db: Session = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    regimen = set_active(db, parse_uuid(household_id, "household_id"), parse_uuid(regimen_id, "regimen_id"), user_id, False)
    return regimen_to_dict(regimen)


@router.post("/{regimen_id}/activate", summary="Resume scheduling a regimen")
def activate(
    regimen_id: str,
    household_id: str = Query(...),
    db: Session = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    regimen = set_active(db, parse_uuid(household_id, "household_id"), parse_uuid(regimen_id, "regimen_id"), user_id, True)
    return regimen_to_dict(regimen)


@router.get("/{regimen_id}/slots", summary="Expected dose slots for a local date range")
def slots(
    regimen_id: str,
    household_id: str = Query(...),
    start: date = Query(...),
    end: date = Query(...),
    db: Session = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    return slots_for_range(
        db,
        parse_uuid(household_id, "household_id"),
        parse_uuid(regimen_id, "regimen_id"),
        user_id,
        start,
        end,
    )
