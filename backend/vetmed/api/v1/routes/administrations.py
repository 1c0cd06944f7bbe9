"""Module: administrations."""

from __future__ import annotations

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from vetmed.api.v1.routes.deps import get_clock, get_current_user_id, get_db, parse_uuid
from vetmed.services import cosign, history
from vetmed.services.recorder import (
    AdministrationRecorder,
    BulkRecordPayload,
    RecordPayload,
    administration_to_dict,
)

router = APIRouter()


class CosignRequestPayload(BaseModel):
    household_id: uuid.UUID
    cosigner_id: uuid.UUID


@router.post("", summary="Record an administration (idempotent)")
def record(
    payload: RecordPayload,
    response: Response,
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    result = AdministrationRecorder(db, clock).record(payload, user_id)
    # 201 for a new row, 200 when the key was already recorded
    response.status_code = 201 if result.created else 200
    return result.to_dict()


@router.post("/bulk", summary="Record one medication for several animals")
def record_bulk(
    payload: BulkRecordPayload,
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    return AdministrationRecorder(db, clock).record_bulk(payload, user_id)


@router.get("", summary="Administration history")
def list_administrations(
    household_id: str = Query(...),
    animal_id: str | None = Query(default=None),
    start: datetime | None = None,
    end: datetime | None = None,
    include_deleted: bool = False,
    limit: int = Query(default=200, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    rows = history.list_history(
        db,
        parse_uuid(household_id, "household_id"),
        user_id,
        animal_id=parse_uuid(animal_id, "animal_id") if animal_id else None,
        start=start,
        end=end,
        include_deleted=include_deleted,
        limit=limit,
        offset=offset,
    )
    return [administration_to_dict(a) for a in rows]


@router.patch("/{administration_id}", summary="Correct an administration inside the edit window")
def correct(
    administration_id: str,
    changes: history.CorrectionPayload,
    household_id: str = Query(...),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    admin = history.correct(
        db,
        clock,
        parse_uuid(household_id, "household_id"),
        parse_uuid(administration_id, "administration_id"),
        user_id,
        changes,
    )
    return administration_to_dict(admin)


@router.delete("/{administration_id}", summary="Soft-delete an administration")
def delete(
    administration_id: str,
    household_id: str = Query(...),
    reason: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    admin = history.soft_delete(
        db,
        clock,
        parse_uuid(household_id, "household_id"),
        parse_uuid(administration_id, "administration_id"),
        user_id,
        reason,
    )
    return administration_to_dict(admin)


@router.post("/{administration_id}/cosign-requests", status_code=201, summary="Ask another caregiver to co-sign")
def request_cosign(
    administration_id: str,
    payload: CosignRequestPayload,
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    req = cosign.request_cosign(
        db,
        clock,
        payload.household_id,
        parse_uuid(administration_id, "administration_id"),
        user_id,
        payload.cosigner_id,
    )
    return cosign.cosign_request_to_dict(req)
