"""Audit log routes."""

from typing import Optional

from fastapi import APIRouter, Query

from dinepos.core.rbac import RequireSettings
from dinepos.core.responses import list_response
from dinepos.db.session import DbSession
from dinepos.schemas.table import AuditLogResponse
from dinepos.services import audit_service

router = APIRouter()


@router.get("")
def get_audit_logs(
    db: DbSession,
    session: RequireSettings,
    action: Optional[str] = Query(None),
    severity: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
):
    entries = audit_service.list_logs(db, action=action, severity=severity, limit=limit)
    return list_response([AuditLogResponse.model_validate(e) for e in entries])
