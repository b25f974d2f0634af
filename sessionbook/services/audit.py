"""Audit logging service for security and administrative events."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any

from flask import current_app, has_request_context, request

from sessionbook.extensions import db
from sessionbook.models import AuditLog

if TYPE_CHECKING:
    from sessionbook.models import User


def _json_safe(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_json_safe(v) for v in value]
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, db.Model):
        return getattr(value, 'id', None)
    return value


def _remote_addr() -> str | None:
    return request.remote_addr if has_request_context() else None


def log_login_attempt(
    user: User | None,
    success: bool,
    email: str,
    reason: str | None = None
) -> None:
    """
    Log a login attempt (successful or failed).

    Args:
        user: User object if found, None if not
        success: Whether login was successful
        email: Email used for login
        reason: Reason for failure (e.g., "invalid_password", "inactive")
    """
    try:
        meta = {
            'ip_address': _remote_addr(),
            'email': email,
        }
        if reason:
            meta['reason'] = reason

        audit_entry = AuditLog(
            user_id=user.id if user else None,
            action="login_success" if success else "login_failed",
            entity_type='user',
            entity_id=user.id if user else None,
            meta=meta
        )
        db.session.add(audit_entry)
        db.session.commit()

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to log login attempt: {e}")


def log_admin_action(
    user: User | None,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    metadata: dict[str, Any] | None = None
) -> AuditLog:
    """
    Record an administrative action in the current session.

    The entry is committed together with the change it describes, so a
    rolled-back mutation never leaves an audit row behind.

    Args:
        user: User who performed the action (None for CLI/system actions)
        action: Action performed (e.g., "session_template_created")
        entity_type: Type of entity affected
        entity_id: ID of entity affected
        metadata: Additional metadata
    """
    meta = _json_safe(dict(metadata or {}))
    meta['ip_address'] = _remote_addr()

    audit_entry = AuditLog(
        user_id=user.id if user else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        meta=meta
    )
    db.session.add(audit_entry)
    current_app.logger.info(
        f"{action}: {entity_type} {entity_id or ''} by {user.email if user else 'system'}".rstrip()
    )
    return audit_entry


__all__ = ["log_login_attempt", "log_admin_action"]
