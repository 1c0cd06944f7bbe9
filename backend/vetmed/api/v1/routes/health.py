"""Module: health."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from vetmed.api.v1.routes.deps import get_clock, get_db

router = APIRouter()


# Endpoint: lightweight health probe for service liveness.
@router.get("")
def health(clock=Depends(get_clock)):
    return {"status": "ok", "now": clock.now().isoformat()}


# Endpoint: readiness; checks the database answers.
@router.get("/ready")
def ready(db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    return {"status": "ok", "database": "ok"}
