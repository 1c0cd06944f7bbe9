"""Module: history.

History listing, corrections inside the edit window, and soft delete. A
deleted row keeps its key under a `:deleted:` suffix. A later record under a
server-derived slot key starts fresh. A replay that carries the client key
resolves to the deleted row and creates nothing.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from vetmed.core.config import settings
from vetmed.core.errors import Conflict, Forbidden, ValidationError
from vetmed.db.models.administration import Administration
from vetmed.db.models.regimen import Regimen
from vetmed.scheduling.clock import ensure_utc
from vetmed.scheduling.status import resolve_status
from vetmed.services import repository as repo
from vetmed.services.audit import audit_entry
from vetmed.services.due import invalidate

logger = logging.getLogger(__name__)

CORRECTABLE_FIELDS = ("notes", "site", "condition_tags", "dose", "recorded_at")
DELETE_ROLES = {"OWNER", "ADMIN"}


class CorrectionPayload(BaseModel):
    notes: str | None = None
    site: str | None = None
    condition_tags: list[str] | None = None
    dose: str | None = None
    recorded_at: datetime | None = None


def list_history(
    db: Session,
    household_id: uuid.UUID,
    user_id: uuid.UUID,
    animal_id: uuid.UUID | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    include_deleted: bool = False,
    limit: int = 200,
    offset: int = 0,
) -> list[Administration]:
    repo.require_member(db, household_id, user_id)

    stmt = select(Administration).where(Administration.household_id == household_id)
    if animal_id is not None:
        stmt = stmt.where(Administration.animal_id == animal_id)
    if start is not None:
        stmt = stmt.where(Administration.recorded_at >= ensure_utc(start))
    if end is not None:
        stmt = stmt.where(Administration.recorded_at < ensure_utc(end))
    if not include_deleted:
        stmt = stmt.where(Administration.deleted_at.is_(None))
    stmt = stmt.order_by(Administration.recorded_at.desc()).offset(offset).limit(limit)
    return list(db.execute(stmt).scalars().all())


def correct(
    db: Session,
    clock,
    household_id: uuid.UUID,
    administration_id: uuid.UUID,
    user_id: uuid.UUID,
    changes: CorrectionPayload,
) -> Administration:
    """Apply a correction inside the edit window; only the recording caregiver may edit."""
    repo.require_member(db, household_id, user_id, write=True)
    admin = repo.get_administration(db, household_id, administration_id)

    if admin.caregiver_id != user_id:
        raise Forbidden("Only the caregiver who recorded this dose can correct it")
    now = clock.now()
    if now > ensure_utc(admin.created_at) + timedelta(minutes=settings.edit_window_mins):
        raise Conflict(f"Corrections are only allowed within {settings.edit_window_mins} minutes of recording")

    updates = changes.model_dump(exclude_unset=True)
    if not updates:
        raise ValidationError("Nothing to correct")

    before = {}
    for field in CORRECTABLE_FIELDS:
        if field not in updates:
            continue
        value = updates[field]
        if field == "recorded_at":
            if value is None:
                raise ValidationError("recorded_at cannot be cleared")
            value = ensure_utc(value)
            before[field] = ensure_utc(admin.recorded_at).isoformat()
        elif field == "condition_tags":
            value = list(value or [])
            before[field] = list(admin.condition_tags or [])
        else:
            before[field] = getattr(admin, field)
        setattr(admin, field, value)

    if "recorded_at" in updates and admin.scheduled_for is not None:
        regimen = db.get(Regimen, admin.regimen_id)
        admin.status = resolve_status(admin.scheduled_for, admin.recorded_at, regimen.cutoff_mins).value
    admin.updated_at = now

    db.add(
        audit_entry(
            user_id, household_id, "administration.corrected", "administration", admin.administration_id,
            {"before": before, "after": {k: (v.isoformat() if isinstance(v, datetime) else v) for k, v in updates.items()}},
        )
    )
    db.commit()
    db.refresh(admin)
    invalidate(household_id)
    return admin


def soft_delete(
    db: Session,
    clock,
    household_id: uuid.UUID,
    administration_id: uuid.UUID,
    user_id: uuid.UUID,
    reason: str,
) -> Administration:
    member = repo.require_member(db, household_id, user_id, write=True)
    admin = repo.get_administration(db, household_id, administration_id)

    if admin.caregiver_id != user_id and member.role.upper() not in DELETE_ROLES:
        raise Forbidden("Only the recording caregiver or a household admin can delete a dose")
    if not reason or not reason.strip():
        raise ValidationError("A reason is required to delete an administration")

    now = clock.now()
    original_key = admin.idempotency_key
    admin.deleted_at = now
    admin.deleted_by = user_id
    admin.delete_reason = reason.strip()
    admin.updated_at = now
    # frees the slot's key so the dose can be recorded again
    admin.idempotency_key = f"{original_key}:deleted:{admin.administration_id.hex[:12]}"
    db.add(
        audit_entry(
            user_id, household_id, "administration.deleted", "administration", admin.administration_id,
            {"reason": admin.delete_reason, "idempotency_key": original_key},
        )
    )
    db.commit()
    invalidate(household_id)
    logger.info("administration=%s soft-deleted by %s", admin.administration_id, user_id)
    return admin
