"""Module: commands.

Mutations travel as ``{type, payload, idempotency_key}`` commands. The online
transport dispatches them straight to their handler; the queued transport parks
them in ``pending_mutations`` under the same idempotency key and replays them
on ``flush`` with exponential backoff (``base * 2**retries`` seconds) until
``max_retries`` is reached, after which the entry is marked ``failed``.

Domain errors (validation, auth, blocked) are final and never retried; only
storage-level failures are.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vetmed.core.config import settings
from vetmed.core.errors import ValidationError, VetmedError
from vetmed.db.models.pending_mutation import PendingMutation
from vetmed.scheduling.clock import ensure_utc
from vetmed.services import repository as repo
from vetmed.services.recorder import AdministrationRecorder, BulkRecordPayload, RecordPayload

logger = logging.getLogger(__name__)

RECORD_ADMINISTRATION = "administration.record"
RECORD_BULK = "administration.bulk"

RETRYABLE = (SQLAlchemyError, OSError)

Handler = Callable[[Session, object, dict, uuid.UUID], dict]


class CommandIn(BaseModel):
    type: str
    payload: dict
    idempotency_key: str = Field(min_length=1)


@dataclass
class Command:
    type: str
    payload: dict = field(default_factory=dict)
    idempotency_key: str = ""

    @classmethod
    def from_in(cls, body: CommandIn) -> "Command":
        return cls(body.type, dict(body.payload), body.idempotency_key)

    def keyed_payload(self) -> dict:
        data = dict(self.payload)
        inner = data.get("idempotency_key")
        if inner is not None and inner != self.idempotency_key:
            raise ValidationError("Payload idempotency_key does not match the command key")
        data["idempotency_key"] = self.idempotency_key
        return data


def _validate(model, data: dict):
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError("Invalid command payload", errors=exc.errors(include_url=False, include_context=False, include_input=False))


def _record(db: Session, clock, payload: dict, user_id: uuid.UUID) -> dict:
    return AdministrationRecorder(db, clock).record(_validate(RecordPayload, payload), user_id).to_dict()


def _record_bulk(db: Session, clock, payload: dict, user_id: uuid.UUID) -> dict:
    return AdministrationRecorder(db, clock).record_bulk(_validate(BulkRecordPayload, payload), user_id)


DEFAULT_HANDLERS: dict[str, Handler] = {
    RECORD_ADMINISTRATION: _record,
    RECORD_BULK: _record_bulk,
}


class CommandDispatcher:
    def __init__(self, handlers: dict[str, Handler] | None = None):
        self.handlers = dict(DEFAULT_HANDLERS if handlers is None else handlers)

    def register(self, command_type: str, handler: Handler) -> None:
        self.handlers[command_type] = handler

    def dispatch(self, db: Session, clock, command: Command, user_id: uuid.UUID) -> dict:
        handler = self.handlers.get(command.type)
        if handler is None:
            raise ValidationError(f"Unknown command type {command.type!r}")
        try:
            return handler(db, clock, command.keyed_payload(), user_id)
        except Exception:
            db.rollback()
            raise


class OnlineTransport:
    def __init__(self, db: Session, clock, dispatcher: CommandDispatcher | None = None):
        self.db = db
        self.clock = clock
        self.dispatcher = dispatcher or CommandDispatcher()

    def send(self, command: Command, user_id: uuid.UUID) -> dict:
        return self.dispatcher.dispatch(self.db, self.clock, command, user_id)

    def replay(self, commands: list[Command], user_id: uuid.UUID) -> list[dict]:
        """Send client-queued commands in order; each one succeeds or fails on its own."""
        out = []
        for command in commands:
            entry = {"idempotency_key": command.idempotency_key, "type": command.type}
            try:
                entry.update(ok=True, result=self.send(command, user_id))
            except VetmedError as exc:
                entry.update(ok=False, error=exc.to_dict(), status_code=exc.status_code)
            out.append(entry)
        return out


def pending_to_dict(p: PendingMutation) -> dict:
    return {
        "idempotency_key": p.idempotency_key,
        "type": p.mutation_type,
        "status": p.status,
        "retries": p.retries,
        "max_retries": p.max_retries,
        "last_error": p.last_error,
        "next_attempt_at": ensure_utc(p.next_attempt_at).isoformat() if p.next_attempt_at else None,
    }


class QueuedTransport:
    def __init__(self, db: Session, clock, dispatcher: CommandDispatcher | None = None):
        self.db = db
        self.clock = clock
        self.dispatcher = dispatcher or CommandDispatcher()

    def enqueue(self, command: Command, user_id: uuid.UUID, household_id: uuid.UUID | None = None) -> PendingMutation:
        if household_id is not None:
            repo.require_member(self.db, household_id, user_id, write=True)
        if command.type not in self.dispatcher.handlers:
            raise ValidationError(f"Unknown command type {command.type!r}")

        existing = self.db.get(PendingMutation, command.idempotency_key)
        if existing is not None:
            return existing

        row = PendingMutation(
            idempotency_key=command.idempotency_key,
            mutation_type=command.type,
            payload=command.keyed_payload(),
            household_id=household_id,
            user_id=user_id,
            retries=0,
            max_retries=settings.offline_max_retries,
            next_attempt_at=self.clock.now(),
            status="queued",
        )
        self.db.add(row)
        self.db.commit()
        logger.info("queued command type=%s key=%s", command.type, command.idempotency_key)
        return row

    def backoff(self, retries: int) -> timedelta:
        return timedelta(seconds=settings.offline_retry_base_seconds * (2 ** retries))

    def flush(self, user_id: uuid.UUID | None = None) -> dict:
        """Replay queued commands that are due; returns per-key outcomes."""
        now = self.clock.now()
        stmt = select(PendingMutation).where(PendingMutation.status == "queued").order_by(PendingMutation.created_at)
        if user_id is not None:
            stmt = stmt.where(PendingMutation.user_id == user_id)
        rows = [
            r for r in self.db.execute(stmt).scalars().all()
            if r.next_attempt_at is None or ensure_utc(r.next_attempt_at) <= now
        ]

        sent, failed, retrying = [], [], []
        for row in rows:
            key = row.idempotency_key
            command = Command(row.mutation_type, dict(row.payload), key)
            try:
                result = self.dispatcher.dispatch(self.db, self.clock, command, row.user_id)
            except VetmedError as exc:
                row = self.db.get(PendingMutation, key)
                row.status = "failed"
                row.last_error = f"{exc.code}: {exc.detail}"
                self.db.commit()
                failed.append(pending_to_dict(row))
                logger.warning("queued command key=%s failed permanently: %s", key, row.last_error)
            except RETRYABLE as exc:
                row = self.db.get(PendingMutation, key)
                row.retries += 1
                row.last_error = str(exc)
                if row.retries >= row.max_retries:
                    row.status = "failed"
                    failed.append(pending_to_dict(row))
                    logger.error("queued command key=%s gave up after %d retries", key, row.retries)
                else:
                    row.next_attempt_at = now + self.backoff(row.retries)
                    retrying.append(pending_to_dict(row))
                    logger.warning("queued command key=%s retry %d at %s", key, row.retries, row.next_attempt_at)
                self.db.commit()
            else:
                self.db.delete(self.db.get(PendingMutation, key))
                self.db.commit()
                sent.append({"idempotency_key": key, "result": result})

        return {"sent": sent, "failed": failed, "retrying": retrying}

    def pending(self, user_id: uuid.UUID) -> list[PendingMutation]:
        return list(
            self.db.execute(
                select(PendingMutation).where(PendingMutation.user_id == user_id).order_by(PendingMutation.created_at)
            ).scalars().all()
        )
