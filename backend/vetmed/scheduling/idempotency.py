"""Module: idempotency.

Deterministic keys for administration commands. The same logical dose attempt
(retry, offline replay, double tap) always yields the same key; scheduled
doses are told apart by their slot ordinal within the local day.

PRN doses are never deduplicated by time: every PRN submission carries a
client-generated nonce, so two same-day PRN doses cannot collapse into one.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional

from vetmed.core.errors import ValidationError

KEY_PREFIX = "adm"
LOCAL_DAY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
NONCE_RE = re.compile(r"^[A-Za-z0-9_\-]{8,64}$")


def _require_id(value, name: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text or ":" in text:
        raise ValidationError(f"{name} is required and may not contain ':'")
    return text


def new_prn_nonce() -> str:
    return uuid.uuid4().hex


def admin_key(
    animal_id,
    regimen_id,
    local_day_iso: str,
    slot_index: Optional[int] = None,
    nonce: Optional[str] = None,
) -> str:
    animal = _require_id(animal_id, "animal_id")
    regimen = _require_id(regimen_id, "regimen_id")
    if not isinstance(local_day_iso, str) or not LOCAL_DAY_RE.match(local_day_iso):
        raise ValidationError(f"Invalid local day {local_day_iso!r} (expected YYYY-MM-DD)")

    base = f"{KEY_PREFIX}:{animal}:{regimen}:{local_day_iso}"

    if slot_index is not None:
        if isinstance(slot_index, bool) or not isinstance(slot_index, int) or slot_index < 0:
            raise ValidationError("slot_index must be a non-negative integer")
        return f"{base}:{slot_index}"

    if not nonce:
        raise ValidationError("PRN administration keys need a client nonce")
    if not NONCE_RE.match(nonce):
        raise ValidationError("nonce must be 8-64 characters of [A-Za-z0-9_-]")
    return f"{base}:prn:{nonce}"


def bulk_key(household_id, animal_ids: Iterable, regimen_id, administered_at: datetime) -> str:
    """Key for a bulk submission, stable to the minute of administration."""
    if administered_at.tzinfo is None:
        administered_at = administered_at.replace(tzinfo=timezone.utc)
    minute = administered_at.astimezone(timezone.utc).replace(second=0, microsecond=0)
    animals = ",".join(sorted(str(a) for a in animal_ids))
    return ":".join(["bulk", str(household_id), animals, str(regimen_id), minute.isoformat()])


def per_animal_key(batch_key: str, animal_id) -> str:
    return f"{batch_key}-{animal_id}"
