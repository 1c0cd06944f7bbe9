"""Module: repository.

SQLAlchemy queries the scheduling services run against. Everything here takes
the request's ``Session`` explicitly; nothing holds state between calls.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vetmed.core.config import settings
from vetmed.core.errors import Forbidden, NotFound, Unauthorized
from vetmed.db.models.administration import Administration
from vetmed.db.models.animal import Animal
from vetmed.db.models.household import Household
from vetmed.db.models.household_member import HouseholdMember
from vetmed.db.models.inventory_item import InventoryItem
from vetmed.db.models.medication import Medication
from vetmed.db.models.regimen import Regimen
from vetmed.scheduling.schedule import RegimenSpec, ScheduleType
from vetmed.scheduling.status import AdminStatus

logger = logging.getLogger(__name__)


# -------------------------
# Membership
# -------------------------
def current_membership(db: Session, household_id: uuid.UUID, user_id: uuid.UUID) -> HouseholdMember | None:
    return db.execute(
        select(HouseholdMember).where(
            HouseholdMember.household_id == household_id,
            HouseholdMember.user_id == user_id,
        )
    ).scalar_one_or_none()


def require_member(db: Session, household_id: uuid.UUID, user_id: uuid.UUID, write: bool = False) -> HouseholdMember:
    member = current_membership(db, household_id, user_id)
    if member is None:
        raise Unauthorized("Not a member of this household")
    if write and not member.can_write:
        raise Forbidden(f"Role {member.role} cannot record or change administrations")
    return member


# -------------------------
# Households / animals
# -------------------------
def get_animal(db: Session, household_id: uuid.UUID, animal_id: uuid.UUID) -> Animal | None:
    return db.execute(
        select(Animal).where(
            Animal.animal_id == animal_id,
            Animal.household_id == household_id,
            Animal.deleted_at.is_(None),
        )
    ).scalar_one_or_none()


def animal_timezones(db: Session, household_id: uuid.UUID) -> dict[str, str]:
    """Effective zone per animal: its own, else the household's, else the default."""
    household = db.get(Household, household_id)
    fallback = (household.timezone if household else None) or settings.default_timezone
    rows = db.execute(
        select(Animal.animal_id, Animal.timezone).where(
            Animal.household_id == household_id,
            Animal.deleted_at.is_(None),
        )
    ).all()
    return {str(aid): (tz or fallback) for aid, tz in rows}


def timezone_for_animal(db: Session, animal: Animal) -> str:
    if animal.timezone:
        return animal.timezone
    household = db.get(Household, animal.household_id)
    return (household.timezone if household else None) or settings.default_timezone


# -------------------------
# Regimens
# -------------------------
def get_regimen(db: Session, regimen_id: uuid.UUID) -> Regimen | None:
    return db.execute(
        select(Regimen).where(Regimen.regimen_id == regimen_id, Regimen.deleted_at.is_(None))
    ).scalar_one_or_none()


def get_household_regimen(db: Session, household_id: uuid.UUID, regimen_id: uuid.UUID) -> Regimen:
    regimen = db.execute(
        select(Regimen)
        .join(Animal, Animal.animal_id == Regimen.animal_id)
        .where(
            Regimen.regimen_id == regimen_id,
            Regimen.deleted_at.is_(None),
            Animal.household_id == household_id,
        )
    ).scalar_one_or_none()
    if regimen is None:
        raise NotFound("Regimen not found")
    return regimen


def list_regimens(
    db: Session,
    household_id: uuid.UUID,
    animal_id: uuid.UUID | None = None,
    active_only: bool = False,
) -> list[tuple[Regimen, Medication]]:
    stmt = (
        select(Regimen, Medication)
        .join(Animal, Animal.animal_id == Regimen.animal_id)
        .join(Medication, Medication.medication_id == Regimen.medication_id)
        .where(
            Animal.household_id == household_id,
            Animal.deleted_at.is_(None),
            Regimen.deleted_at.is_(None),
        )
    )
    if animal_id is not None:
        stmt = stmt.where(Regimen.animal_id == animal_id)
    if active_only:
        stmt = stmt.where(Regimen.active.is_(True))
    stmt = stmt.order_by(Medication.generic_name, Regimen.created_at)
    return [(r, m) for r, m in db.execute(stmt).all()]


def get_active_regimens(db: Session, household_id: uuid.UUID, animal_id: uuid.UUID | None = None) -> list[RegimenSpec]:
    return [
        RegimenSpec.from_model(regimen, medication.display_name)
        for regimen, medication in list_regimens(db, household_id, animal_id, active_only=True)
    ]


def regimen_for_animal(db: Session, animal_id: uuid.UUID, medication_id: uuid.UUID) -> Regimen | None:
    return db.execute(
        select(Regimen)
        .where(
            Regimen.animal_id == animal_id,
            Regimen.medication_id == medication_id,
            Regimen.active.is_(True),
            Regimen.deleted_at.is_(None),
        )
        .order_by(Regimen.created_at)
        .limit(1)
    ).scalar_one_or_none()


# -------------------------
# Administrations
# -------------------------
def get_administration_by_key(db: Session, key: str) -> Administration | None:
    return db.execute(
        select(Administration).where(Administration.idempotency_key == key)
    ).scalar_one_or_none()


def get_deleted_by_key(db: Session, key: str) -> Administration | None:
    """Most recent soft-deleted row that was recorded under ``key``."""
    return db.execute(
        select(Administration)
        .where(
            Administration.idempotency_key.startswith(f"{key}:deleted:", autoescape=True),
            Administration.deleted_at.is_not(None),
        )
        .order_by(Administration.deleted_at.desc())
        .limit(1)
    ).scalars().first()


def get_administration(db: Session, household_id: uuid.UUID, administration_id: uuid.UUID) -> Administration:
    admin = db.execute(
        select(Administration).where(
            Administration.administration_id == administration_id,
            Administration.household_id == household_id,
            Administration.deleted_at.is_(None),
        )
    ).scalar_one_or_none()
    if admin is None:
        raise NotFound("Administration not found")
    return admin


def insert_administration_if_absent(db: Session, admin: Administration, *related) -> tuple[Administration, bool]:
    """Persist ``admin`` (and ``related`` rows) unless its key already exists.

    Returns ``(row, created)``. A unique-key violation from a concurrent insert
    rolls the whole unit back and hands back the row that won.
    """
    db.add(admin)
    for obj in related:
        db.add(obj)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = get_administration_by_key(db, admin.idempotency_key)
        if existing is None:
            raise
        logger.info("duplicate administration key=%s resolved to %s", admin.idempotency_key, existing.administration_id)
        return existing, False
    db.refresh(admin)
    return admin, True


def recorded_slots(
    db: Session,
    household_id: uuid.UUID,
    since: datetime,
    animal_id: uuid.UUID | None = None,
) -> list[tuple[str, datetime]]:
    stmt = select(Administration.regimen_id, Administration.scheduled_for).where(
        Administration.household_id == household_id,
        Administration.scheduled_for.is_not(None),
        Administration.scheduled_for >= since,
        Administration.deleted_at.is_(None),
    )
    if animal_id is not None:
        stmt = stmt.where(Administration.animal_id == animal_id)
    return [(str(rid), at) for rid, at in db.execute(stmt).all()]


def last_dose_anchors(
    db: Session,
    regimens: list[RegimenSpec],
    before: datetime | None = None,
) -> dict[str, datetime]:
    """Most recent dose instant per INTERVAL regimen, optionally before an instant.

    Reconciled MISSED rows are not doses and never anchor the series.
    """
    ids = [uuid.UUID(r.regimen_id) for r in regimens if r.schedule_type == ScheduleType.INTERVAL]
    if not ids:
        return {}
    stmt = select(Administration.regimen_id, func.max(Administration.recorded_at)).where(
        Administration.regimen_id.in_(ids),
        Administration.status != AdminStatus.MISSED.value,
        Administration.deleted_at.is_(None),
    )
    if before is not None:
        stmt = stmt.where(Administration.recorded_at < before)
    rows = db.execute(stmt.group_by(Administration.regimen_id)).all()
    return {str(rid): at for rid, at in rows if at is not None}


def count_prn_doses(db: Session, regimen_id: uuid.UUID, start: datetime, end: datetime) -> int:
    return db.execute(
        select(func.count(Administration.administration_id)).where(
            Administration.regimen_id == regimen_id,
            Administration.scheduled_for.is_(None),
            Administration.recorded_at >= start,
            Administration.recorded_at < end,
            Administration.deleted_at.is_(None),
        )
    ).scalar_one()


# -------------------------
# Inventory
# -------------------------
def get_inventory_source(db: Session, household_id: uuid.UUID, item_id: uuid.UUID) -> InventoryItem | None:
    return db.execute(
        select(InventoryItem).where(
            InventoryItem.item_id == item_id,
            InventoryItem.household_id == household_id,
        )
    ).scalar_one_or_none()
