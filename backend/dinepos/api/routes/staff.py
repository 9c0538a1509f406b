"""Staff management routes."""

from fastapi import APIRouter

from dinepos.core.rbac import RequireStaffAdmin
from dinepos.db.session import DbSession
from dinepos.schemas.auth import StaffCreate, StaffResponse
from dinepos.services.table_service import TableService

router = APIRouter()


@router.post("", response_model=StaffResponse, status_code=201)
def add_staff(body: StaffCreate, db: DbSession, session: RequireStaffAdmin):
    return TableService(db).add_staff(body.staff_id, body.name, body.pin, body.role, session)


@router.delete("/{staff_id}")
def remove_staff(staff_id: str, db: DbSession, session: RequireStaffAdmin):
    TableService(db).remove_staff(staff_id, session)
    return {"status": "removed", "staff_id": staff_id.upper()}
