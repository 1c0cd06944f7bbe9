"""Module: due.

Builds the due board (due now / later today / PRN) for a household or one of
its animals. Boards are cached per household, animal and minute; anything that
changes what is due clears the household's entries.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from vetmed.core import cache
from vetmed.core.config import settings
from vetmed.core.errors import NotFound
from vetmed.scheduling.classifier import classify
from vetmed.scheduling.clock import ensure_utc
from vetmed.services import repository as repo

logger = logging.getLogger(__name__)


def due_cache_key(animal_id, now: datetime) -> tuple[str, str]:
    minute = ensure_utc(now).replace(second=0, microsecond=0)
    return (str(animal_id) if animal_id else "*", minute.isoformat())


def invalidate(household_id) -> int:
    dropped = cache.due_boards.drop_scope(str(household_id))
    if dropped:
        logger.debug("cleared %d due boards for household=%s", dropped, household_id)
    return dropped


def list_due(
    db: Session,
    household_id: uuid.UUID,
    user_id: uuid.UUID,
    now: datetime,
    animal_id: uuid.UUID | None = None,
) -> dict:
    repo.require_member(db, household_id, user_id)
    now = ensure_utc(now)

    key = due_cache_key(animal_id, now)
    hit = cache.due_boards.get(str(household_id), key)
    if hit is not None:
        return hit

    if animal_id is not None and repo.get_animal(db, household_id, animal_id) is None:
        raise NotFound("Animal not found")

    regimens = repo.get_active_regimens(db, household_id, animal_id)
    board = classify(
        regimens,
        now,
        repo.animal_timezones(db, household_id),
        recorded=repo.recorded_slots(db, household_id, now - timedelta(days=2), animal_id),
        anchors=repo.last_dose_anchors(db, regimens),
        default_timezone=settings.default_timezone,
        grace_mins=settings.overdue_grace_mins,
    )
    out = board.to_dict()
    out["household_id"] = str(household_id)
    out["animal_id"] = str(animal_id) if animal_id else None
    out["now"] = now.isoformat()

    cache.due_boards.put(str(household_id), key, out)
    logger.debug(
        "due board household=%s due=%d later=%d prn=%d",
        household_id, len(board.due), len(board.later), len(board.prn),
    )
    return out
