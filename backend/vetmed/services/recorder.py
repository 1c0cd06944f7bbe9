"""Module: recorder.

Records medication administrations with at-most-once semantics.

Order of checks for ``record``:

1. membership (no membership -> Unauthorized, read-only role -> Forbidden);
2. an existing row under the same idempotency key is returned as-is;
3. animal and active regimen must belong to the household;
4. the inventory source, when given, must exist; expired stock or a different
   medication blocks the dose unless ``allow_override`` is set;
5. the dose is matched to its slot, the status resolved, co-sign state set;
6. row, inventory decrement and audit entry commit together.

The unique key constraint is the final arbiter; losing an insert race is
reported exactly like a pre-checked duplicate.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, time, timedelta

from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from vetmed.core.errors import Blocked, Conflict, NotFound, ValidationError
from vetmed.db.models.administration import Administration
from vetmed.db.models.regimen import Regimen
from vetmed.scheduling.clock import ensure_utc
from vetmed.scheduling.idempotency import admin_key, bulk_key, per_animal_key
from vetmed.scheduling.schedule import DueSlot, RegimenSpec, expected_doses
from vetmed.scheduling.slots import get_zone, local_day, resolve_local
from vetmed.scheduling.status import resolve_status
from vetmed.services import repository as repo
from vetmed.services.audit import audit_entry
from vetmed.services.due import invalidate

logger = logging.getLogger(__name__)


class RecordPayload(BaseModel):
    household_id: uuid.UUID
    animal_id: uuid.UUID
    regimen_id: uuid.UUID
    idempotency_key: str | None = None
    nonce: str | None = None
    administered_at: datetime | None = None
    scheduled_for: datetime | None = None
    slot_index: int | None = None
    inventory_source_id: uuid.UUID | None = None
    dose: str | None = None
    site: str | None = None
    notes: str | None = None
    condition_tags: list[str] = Field(default_factory=list)
    requires_cosign: bool = False
    cosign_user_id: uuid.UUID | None = None
    allow_override: bool = False


class BulkRecordPayload(BaseModel):
    household_id: uuid.UUID
    animal_ids: list[uuid.UUID] = Field(min_length=1, max_length=50)
    regimen_id: uuid.UUID
    idempotency_key: str | None = None
    administered_at: datetime | None = None
    inventory_source_id: uuid.UUID | None = None
    dose: str | None = None
    site: str | None = None
    notes: str | None = None
    allow_override: bool = False


@dataclass
class RecordResult:
    administration: Administration
    created: bool

    def to_dict(self) -> dict:
        return {"created": self.created, "administration": administration_to_dict(self.administration)}


def _iso(value: datetime | None) -> str | None:
    return ensure_utc(value).isoformat() if value is not None else None


def administration_to_dict(a: Administration) -> dict:
    return {
        "id": str(a.administration_id),
        "household_id": str(a.household_id),
        "animal_id": str(a.animal_id),
        "regimen_id": str(a.regimen_id),
        "caregiver_id": str(a.caregiver_id),
        "scheduled_for": _iso(a.scheduled_for),
        "recorded_at": _iso(a.recorded_at),
        "status": a.status,
        "idempotency_key": a.idempotency_key,
        "inventory_source_id": str(a.inventory_source_id) if a.inventory_source_id else None,
        "inventory_override": a.inventory_override,
        "dose": a.dose,
        "site": a.site,
        "notes": a.notes,
        "condition_tags": list(a.condition_tags or []),
        "requires_cosign": a.requires_cosign,
        "cosign_state": a.cosign_state,
        "cosign_user_id": str(a.cosign_user_id) if a.cosign_user_id else None,
        "cosigned_at": _iso(a.cosigned_at),
        "deleted_at": _iso(a.deleted_at),
    }


class AdministrationRecorder:
    def __init__(self, db: Session, clock):
        self.db = db
        self.clock = clock

    # -------------------------
    # Single animal
    # -------------------------
    def record(self, payload: RecordPayload, user_id: uuid.UUID) -> RecordResult:
        db = self.db
        repo.require_member(db, payload.household_id, user_id, write=True)

        if payload.idempotency_key:
            existing = self._existing(payload.idempotency_key, payload.household_id)
            if existing is not None:
                return RecordResult(existing, False)
            # replaying a client key whose dose was deleted must not bring it back
            tombstone = repo.get_deleted_by_key(db, payload.idempotency_key)
            if tombstone is not None and tombstone.household_id == payload.household_id:
                return RecordResult(tombstone, False)

        animal = repo.get_animal(db, payload.household_id, payload.animal_id)
        if animal is None:
            raise ValidationError("Animal not found in this household")
        regimen = repo.get_regimen(db, payload.regimen_id)
        if regimen is None or regimen.animal_id != animal.animal_id:
            raise ValidationError("Regimen not found for this animal")
        if not regimen.active:
            raise ValidationError("Regimen is not active")

        tz_name = repo.timezone_for_animal(db, animal)
        administered_at = ensure_utc(payload.administered_at or self.clock.now())
        spec = RegimenSpec.from_model(regimen)

        slot = None
        scheduled_for = None
        if not spec.is_prn:
            slot = self._resolve_slot(spec, tz_name, payload, administered_at)
            scheduled_for = slot.target_instant if slot else ensure_utc(payload.scheduled_for)

        key = payload.idempotency_key or self._derive_key(payload, slot, administered_at, tz_name)
        if not payload.idempotency_key:
            existing = self._existing(key, payload.household_id)
            if existing is not None:
                return RecordResult(existing, False)

        reasons = []
        item = None
        if payload.inventory_source_id is not None:
            item = repo.get_inventory_source(db, payload.household_id, payload.inventory_source_id)
            if item is None:
                raise ValidationError("Inventory source not found in this household")
            if item.expires_on < local_day(administered_at, tz_name):
                reasons.append("inventory_expired")
            if item.medication_id != regimen.medication_id:
                reasons.append("medication_mismatch")
        if spec.is_prn and regimen.max_daily_doses:
            day_start, day_end = _local_day_bounds(administered_at, tz_name)
            if repo.count_prn_doses(db, regimen.regimen_id, day_start, day_end) >= regimen.max_daily_doses:
                reasons.append("max_daily_doses_reached")
        if reasons and not payload.allow_override:
            raise Blocked("Administration blocked", reasons)

        status = resolve_status(scheduled_for, administered_at, regimen.cutoff_mins)
        requires_cosign = payload.requires_cosign or regimen.high_risk or regimen.requires_cosign
        cosign_state, cosigned_at = self._cosign_state(payload, user_id, requires_cosign)

        admin = Administration(
            administration_id=uuid.uuid4(),
            household_id=payload.household_id,
            animal_id=animal.animal_id,
            regimen_id=regimen.regimen_id,
            caregiver_id=user_id,
            scheduled_for=scheduled_for,
            recorded_at=administered_at,
            status=status.value,
            idempotency_key=key,
            inventory_source_id=item.item_id if item else None,
            inventory_override=bool(reasons),
            dose=payload.dose or regimen.dose,
            site=payload.site,
            notes=payload.notes,
            condition_tags=list(payload.condition_tags),
            requires_cosign=requires_cosign,
            cosign_state=cosign_state,
            cosign_user_id=payload.cosign_user_id if cosigned_at else None,
            cosigned_at=cosigned_at,
            created_at=self.clock.now(),
            updated_at=self.clock.now(),
        )
        if item is not None and item.units_remaining:
            item.units_remaining -= 1

        related = [
            audit_entry(
                user_id,
                payload.household_id,
                "administration.recorded",
                "administration",
                admin.administration_id,
                {"status": status.value, "key": key},
            )
        ]
        if reasons:
            related.append(
                audit_entry(
                    user_id,
                    payload.household_id,
                    "administration.override",
                    "administration",
                    admin.administration_id,
                    {"reasons": reasons},
                )
            )

        row, created = repo.insert_administration_if_absent(db, admin, *related)
        if created:
            invalidate(payload.household_id)
            logger.info(
                "recorded administration=%s regimen=%s status=%s cosign=%s",
                row.administration_id, row.regimen_id, row.status, row.cosign_state,
            )
        return RecordResult(row, created)

    # -------------------------
    # Several animals
    # -------------------------
    def record_bulk(self, payload: BulkRecordPayload, user_id: uuid.UUID) -> dict:
        """Record one medication for several animals; each animal succeeds or fails on its own."""
        db = self.db
        repo.require_member(db, payload.household_id, user_id, write=True)

        template = repo.get_household_regimen(db, payload.household_id, payload.regimen_id)
        administered_at = ensure_utc(payload.administered_at or self.clock.now())
        batch = payload.idempotency_key or bulk_key(
            payload.household_id, payload.animal_ids, payload.regimen_id, administered_at
        )

        results = []
        for animal_id in dict.fromkeys(payload.animal_ids):
            entry = {"animal_id": str(animal_id)}
            try:
                regimen = self._regimen_for(template, animal_id)
                result = self.record(
                    RecordPayload(
                        household_id=payload.household_id,
                        animal_id=animal_id,
                        regimen_id=regimen.regimen_id,
                        idempotency_key=per_animal_key(batch, animal_id),
                        administered_at=administered_at,
                        inventory_source_id=payload.inventory_source_id,
                        dose=payload.dose,
                        site=payload.site,
                        notes=payload.notes,
                        allow_override=payload.allow_override,
                    ),
                    user_id,
                )
            except (ValidationError, Blocked, NotFound, Conflict) as exc:
                db.rollback()
                entry.update(success=False, error=exc.to_dict())
            else:
                entry.update(success=True, **result.to_dict())
            results.append(entry)

        ok = sum(1 for r in results if r["success"])
        logger.info("bulk record batch=%s ok=%d failed=%d", batch, ok, len(results) - ok)
        return {"batch_key": batch, "results": results, "succeeded": ok, "failed": len(results) - ok}

    # -------------------------
    # Helpers
    # -------------------------
    def _existing(self, key: str, household_id: uuid.UUID) -> Administration | None:
        existing = repo.get_administration_by_key(self.db, key)
        if existing is not None and existing.household_id != household_id:
            raise Conflict("Idempotency key already used by another household")
        return existing

    def _regimen_for(self, template: Regimen, animal_id: uuid.UUID) -> Regimen:
        if template.animal_id == animal_id:
            return template
        regimen = repo.regimen_for_animal(self.db, animal_id, template.medication_id)
        if regimen is None:
            raise ValidationError("Animal has no active regimen for this medication")
        return regimen

    def _resolve_slot(self, spec: RegimenSpec, tz_name: str, payload: RecordPayload, administered_at: datetime) -> DueSlot | None:
        pivot = ensure_utc(payload.scheduled_for) if payload.scheduled_for else administered_at
        day = local_day(pivot, tz_name)
        anchors = repo.last_dose_anchors(self.db, [spec])
        slots = expected_doses(
            spec, day - timedelta(days=1), day + timedelta(days=1), tz_name, anchor=anchors.get(spec.regimen_id)
        )

        if payload.slot_index is not None:
            for s in slots:
                if s.local_day == day and s.slot_index == payload.slot_index:
                    return s
            raise ValidationError(f"No slot {payload.slot_index} on {day.isoformat()} for this regimen")

        if payload.scheduled_for is not None:
            for s in slots:
                if s.target_instant == pivot:
                    return s
            if payload.idempotency_key:
                return None
            raise ValidationError("scheduled_for does not match an expected dose of this regimen")

        if not slots:
            raise ValidationError("No expected dose near the administration time")
        return min(slots, key=lambda s: abs(s.target_instant - administered_at))

    @staticmethod
    def _derive_key(payload: RecordPayload, slot: DueSlot | None, administered_at: datetime, tz_name: str) -> str:
        if slot is not None:
            return admin_key(payload.animal_id, payload.regimen_id, slot.local_day.isoformat(), slot.slot_index)
        return admin_key(
            payload.animal_id,
            payload.regimen_id,
            local_day(administered_at, tz_name).isoformat(),
            nonce=payload.nonce,
        )

    def _cosign_state(self, payload: RecordPayload, user_id: uuid.UUID, requires_cosign: bool):
        if payload.cosign_user_id is None:
            return ("PENDING" if requires_cosign else "NOT_REQUIRED"), None
        if payload.cosign_user_id == user_id:
            raise ValidationError("A caregiver cannot co-sign their own administration")
        member = repo.current_membership(self.db, payload.household_id, payload.cosign_user_id)
        if member is None or not member.can_write:
            raise ValidationError("Co-signer must be another caregiver in this household")
        return "APPROVED", self.clock.now()


def _local_day_bounds(instant: datetime, tz_name: str) -> tuple[datetime, datetime]:
    tz = get_zone(tz_name)
    day = local_day(instant, tz_name)
    return resolve_local(day, time(0, 0), tz), resolve_local(day + timedelta(days=1), time(0, 0), tz)
