"""Module: cosign."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from vetmed.api.v1.routes.deps import get_clock, get_current_user_id, get_db, parse_uuid
from vetmed.services import cosign

router = APIRouter()


class ApprovePayload(BaseModel):
    signature: str | None = None


class RejectPayload(BaseModel):
    reason: str | None = None


@router.get("", summary="Pending co-sign requests addressed to the caller")
def pending(
    household_id: str = Query(...),
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    rows = cosign.pending_for(db, clock, parse_uuid(household_id, "household_id"), user_id)
    return [cosign.cosign_request_to_dict(r) for r in rows]


@router.post("/{request_id}/approve", summary="Approve a co-sign request")
def approve(
    request_id: str,
    payload: ApprovePayload | None = None,
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    signature = payload.signature if payload else None
    req = cosign.approve(db, clock, parse_uuid(request_id, "request_id"), user_id, signature)
    return cosign.cosign_request_to_dict(req)


@router.post("/{request_id}/reject", summary="Reject a co-sign request")
def reject(
    request_id: str,
    payload: RejectPayload | None = None,
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    reason = payload.reason if payload else None
    req = cosign.reject(db, clock, parse_uuid(request_id, "request_id"), user_id, reason)
    return cosign.cosign_request_to_dict(req)
