"""Module: cosign.

Second-caregiver confirmation for high-risk administrations. A request names
one co-signer, expires after ``cosign_request_ttl_hours`` and ends approved,
rejected or expired.
"""

from __future__ import annotations

import logging
import uuid
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from vetmed.core.config import settings
from vetmed.core.errors import Conflict, Forbidden, NotFound, ValidationError
from vetmed.db.models.administration import Administration
from vetmed.db.models.cosign_request import CosignRequest
from vetmed.scheduling.clock import ensure_utc
from vetmed.services import repository as repo
from vetmed.services.audit import audit_entry

logger = logging.getLogger(__name__)

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
EXPIRED = "expired"


def cosign_request_to_dict(r: CosignRequest) -> dict:
    return {
        "id": str(r.request_id),
        "administration_id": str(r.administration_id),
        "household_id": str(r.household_id),
        "requester_id": str(r.requester_id),
        "cosigner_id": str(r.cosigner_id),
        "status": r.status,
        "rejection_reason": r.rejection_reason,
        "expires_at": ensure_utc(r.expires_at).isoformat(),
        "signed_at": ensure_utc(r.signed_at).isoformat() if r.signed_at else None,
    }


def request_cosign(
    db: Session,
    clock,
    household_id: uuid.UUID,
    administration_id: uuid.UUID,
    requester_id: uuid.UUID,
    cosigner_id: uuid.UUID,
) -> CosignRequest:
    repo.require_member(db, household_id, requester_id, write=True)
    admin = repo.get_administration(db, household_id, administration_id)

    if admin.cosign_state == "APPROVED":
        raise Conflict("Administration is already co-signed")
    if cosigner_id in (requester_id, admin.caregiver_id):
        raise ValidationError("Co-signer must be someone other than the recording caregiver")
    member = repo.current_membership(db, household_id, cosigner_id)
    if member is None or not member.can_write:
        raise ValidationError("Co-signer must be a caregiver in this household")

    now = clock.now()
    open_req = db.execute(
        select(CosignRequest).where(
            CosignRequest.administration_id == admin.administration_id,
            CosignRequest.cosigner_id == cosigner_id,
            CosignRequest.status == PENDING,
        )
    ).scalar_one_or_none()
    if open_req is not None and ensure_utc(open_req.expires_at) > now:
        return open_req

    req = CosignRequest(
        request_id=uuid.uuid4(),
        administration_id=admin.administration_id,
        household_id=household_id,
        requester_id=requester_id,
        cosigner_id=cosigner_id,
        status=PENDING,
        expires_at=now + timedelta(hours=settings.cosign_request_ttl_hours),
        created_at=now,
    )
    admin.requires_cosign = True
    admin.cosign_state = "PENDING"
    db.add(req)
    db.add(
        audit_entry(
            requester_id, household_id, "cosign.requested", "administration",
            admin.administration_id, {"request_id": str(req.request_id), "cosigner_id": str(cosigner_id)},
        )
    )
    db.commit()
    db.refresh(req)
    return req


def _open_request(db: Session, clock, request_id: uuid.UUID, user_id: uuid.UUID) -> tuple[CosignRequest, Administration]:
    req = db.get(CosignRequest, request_id)
    if req is None:
        raise NotFound("Co-sign request not found")
    if req.cosigner_id != user_id:
        raise Forbidden("Only the named co-signer can decide this request")
    if req.status != PENDING:
        raise Conflict(f"Co-sign request is already {req.status}")
    if clock.now() > ensure_utc(req.expires_at):
        req.status = EXPIRED
        db.commit()
        raise Conflict("Co-sign request has expired")
    admin = db.get(Administration, req.administration_id)
    if admin is None or admin.deleted_at is not None:
        raise NotFound("Administration not found")
    # membership may have changed since the request was made
    repo.require_member(db, req.household_id, user_id, write=True)
    return req, admin


def approve(db: Session, clock, request_id: uuid.UUID, user_id: uuid.UUID, signature: str | None = None) -> CosignRequest:
    req, admin = _open_request(db, clock, request_id, user_id)
    now = clock.now()

    req.status = APPROVED
    req.signature = signature
    req.signed_at = now
    admin.cosign_state = "APPROVED"
    admin.cosign_user_id = user_id
    admin.cosigned_at = now
    admin.updated_at = now
    db.add(audit_entry(user_id, req.household_id, "cosign.approved", "administration", admin.administration_id, {"request_id": str(req.request_id)}))
    db.commit()
    logger.info("cosign approved request=%s administration=%s", req.request_id, admin.administration_id)
    return req


def reject(db: Session, clock, request_id: uuid.UUID, user_id: uuid.UUID, reason: str | None = None) -> CosignRequest:
    req, admin = _open_request(db, clock, request_id, user_id)
    now = clock.now()

    req.status = REJECTED
    req.rejection_reason = reason
    req.signed_at = now
    admin.cosign_state = "REJECTED"
    admin.updated_at = now
    db.add(
        audit_entry(
            user_id, req.household_id, "cosign.rejected", "administration",
            admin.administration_id, {"request_id": str(req.request_id), "reason": reason},
        )
    )
    db.commit()
    logger.info("cosign rejected request=%s administration=%s", req.request_id, admin.administration_id)
    return req


def pending_for(db: Session, clock, household_id: uuid.UUID, user_id: uuid.UUID) -> list[CosignRequest]:
    repo.require_member(db, household_id, user_id)
    now = clock.now()
    rows = db.execute(
        select(CosignRequest)
        .where(
            CosignRequest.household_id == household_id,
            CosignRequest.cosigner_id == user_id,
            CosignRequest.status == PENDING,
        )
        .order_by(CosignRequest.created_at)
    ).scalars().all()
    return [r for r in rows if ensure_utc(r.expires_at) > now]
