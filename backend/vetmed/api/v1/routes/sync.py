"""Module: sync."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from vetmed.api.v1.routes.deps import get_clock, get_current_user_id, get_db
from vetmed.services.commands import Command, CommandIn, OnlineTransport, QueuedTransport, pending_to_dict

router = APIRouter()


class ReplayPayload(BaseModel):
    commands: list[CommandIn] = Field(default_factory=list, max_length=200)


class EnqueuePayload(BaseModel):
    household_id: uuid.UUID | None = None
    command: CommandIn


@router.post("/commands", summary="Replay commands queued on a client while offline")
def replay(
    payload: ReplayPayload,
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    results = OnlineTransport(db, clock).replay([Command.from_in(c) for c in payload.commands], user_id)
    return {"results": results}


@router.post("/enqueue", status_code=202, summary="Park a command in the server-side queue")
def enqueue(
    payload: EnqueuePayload,
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    row = QueuedTransport(db, clock).enqueue(Command.from_in(payload.command), user_id, payload.household_id)
    return pending_to_dict(row)


@router.post("/flush", summary="Replay the caller's queued commands that are due")
def flush(
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    return QueuedTransport(db, clock).flush(user_id)


@router.get("/pending", summary="The caller's queued and failed commands")
def pending(
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    return [pending_to_dict(p) for p in QueuedTransport(db, clock).pending(user_id)]
