"""Module: audit."""

import logging

from vetmed.db.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


def audit_entry(actor_user_id, household_id, action: str, target_type: str, target_id, meta: dict | None = None) -> AuditLog:
    """Build an audit row; the caller adds it to the same transaction as the change."""
    logger.info("audit action=%s target=%s:%s actor=%s", action, target_type, target_id, actor_user_id)
    return AuditLog(
        actor_user_id=actor_user_id,
        household_id=household_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        meta=meta or {},
    )
