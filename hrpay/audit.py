from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hrpay.models import AuditActorType, AuditLog
from hrpay.routers.http_utils import client_ip, request_id, user_agent

logger = logging.getLogger("hrpay.audit")


def log_audit(
    db: Session,
    *,
    actor_type: AuditActorType,
    actor_id: str,
    action: str,
    success: bool,
    entity_type: str | None = None,
    entity_id: str | None = None,
    ip: str | None = None,
    user_agent: str | None = None,
    details: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> AuditLog | None:
    """Persist an audit row in its own commit.

    A failed audit write never fails the business operation; it is rolled
    back and logged instead, and None is returned.
    """
    event = {
        "action": action,
        "actor_type": actor_type.value,
        "actor_id": actor_id,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "success": success,
    }
    row = AuditLog(
        ts_utc=datetime.now(timezone.utc),
        actor_type=actor_type,
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        ip=ip,
        user_agent=user_agent,
        success=success,
        details=details or {},
    )
    db.add(row)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("audit_log_write_failed", extra={"request_id": request_id, **event})
        return None

    logger.info("audit_event", extra={"request_id": request_id, "details": details or {}, **event})
    return row


def audit_request(
    db: Session,
    request: Request,
    *,
    actor_type: AuditActorType,
    actor_id: str,
    action: str,
    success: bool = True,
    entity_type: str | None = None,
    entity_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> AuditLog | None:
    """log_audit with ip, user agent and request id taken from the request."""
    return log_audit(
        db,
        actor_type=actor_type,
        actor_id=actor_id,
        action=action,
        success=success,
        entity_type=entity_type,
        entity_id=entity_id,
        ip=client_ip(request),
        user_agent=user_agent(request),
        details=details,
        request_id=request_id(request),
    )
