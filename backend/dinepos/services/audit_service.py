"""Audit logging service.

Every mutating terminal action appends a human-readable entry (actor, action
code, details, severity) for later review. The audit trail sits beside the
order engine, never inside it: an entry is written after the action it
describes has committed, in its own short transaction, and a failed audit
write is logged and dropped instead of failing that action.

NOTE: When called without an explicit ``db`` session, ``log_action`` creates
its own short-lived session.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dinepos.db.session import SessionLocal
from dinepos.models.operations import AuditLogEntry, AuditSeverity

logger = logging.getLogger("audit")

# Action codes
LOGIN = "LOGIN"
LOGOUT = "LOGOUT"
SHIFT_START = "SHIFT_START"
SHIFT_END = "SHIFT_END"
KOT_SENT = "KOT_SENT"
KOT_STATUS = "KOT_STATUS"
ORDER_SETTLED = "ORDER_SETTLED"
ORDER_CANCELLED = "ORDER_CANCELLED"
DUE_PAYMENT = "DUE_PAYMENT"
TABLE_REMOVE = "TABLE_REMOVE"
RESERVATION_ADD = "RESERVATION_ADD"
RESERVATION_UPDATE = "RESERVATION_UPDATE"
SETTINGS_UPDATE = "SETTINGS_UPDATE"
STAFF_ADD = "STAFF_ADD"
STAFF_REMOVE = "STAFF_REMOVE"
CUSTOMER_UPDATE = "CUSTOMER_UPDATE"
EXPENSE_ADD = "EXPENSE_ADD"


def log_action(
    action: str,
    details: str = "",
    actor: str = "System",
    severity: AuditSeverity = AuditSeverity.INFO,
    db: Optional[Session] = None,
) -> Optional[AuditLogEntry]:
    """Write an audit log entry.

    Args:
        action: Action code (KOT_SENT, ORDER_SETTLED, ...)
        details: Free-text description shown to reviewers
        actor: Staff name of the terminal session, or "System"
        severity: INFO, WARNING or CRITICAL
        db: Optional existing DB session. If None, creates a new one.

    Returns:
        The stored entry, or None if the write failed.
    """
    own_session = db is None
    if own_session:
        db = SessionLocal()

    try:
        entry = AuditLogEntry(
            user_name=actor or "System",
            action=action,
            details=details or "",
            severity=AuditSeverity(severity).value,
            created_at=datetime.now(timezone.utc),
        )
        db.add(entry)
        db.commit()
        return entry
    except SQLAlchemyError:
        logger.exception("Failed to write audit log entry %s", action)
        db.rollback()
        return None
    finally:
        if own_session:
            db.close()


def list_logs(
    db: Session,
    action: Optional[str] = None,
    severity: Optional[str] = None,
    limit: int = 100,
) -> List[AuditLogEntry]:
    """Most recent entries first."""
    stmt = select(AuditLogEntry)
    if action:
        stmt = stmt.where(AuditLogEntry.action == action)
    if severity:
        stmt = stmt.where(AuditLogEntry.severity == severity)
    stmt = stmt.order_by(AuditLogEntry.created_at.desc(), AuditLogEntry.id.desc()).limit(limit)
    return list(db.execute(stmt).scalars())
