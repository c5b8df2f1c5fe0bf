"""Audit trail for writes that went through the service"""
import hashlib
import json
import logging
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from po_confirmation.models.audit import Audit
from po_confirmation.core.enums import AuditAction

logger = logging.getLogger(__name__)


def payload_hash(payload: dict) -> str:
    payload_str = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha256(payload_str.encode()).hexdigest()


def log_audit(
    db: AsyncSession,
    user_id: Optional[int],
    action: AuditAction,
    payload: Optional[dict] = None
) -> Audit:
    """Stage an audit row in the caller's transaction.

    Not flushed here: a denied write in the same transaction must surface
    from the commit, not from the audit insert.
    """
    if payload is None:
        payload = {}

    if hasattr(payload, "model_dump"):
        payload_dict = payload.model_dump(exclude_unset=True)
    elif isinstance(payload, dict):
        payload_dict = payload
    else:
        payload_dict = {}

    audit_record = Audit(
        user_id=user_id,
        action=str(action),
        payload_hash=payload_hash(payload_dict),
    )
    db.add(audit_record)
    logger.debug(f"Audit {action} staged for user {user_id}")
    return audit_record
