"""Floor routes: table occupancy, adding and removing tables."""

from fastapi import APIRouter

from dinepos.core.rbac import RequireKitchen, RequireTables
from dinepos.core.responses import list_response
from dinepos.db.session import DbSession
from dinepos.schemas.catalog import TableCreate, TableResponse
from dinepos.schemas.table import TableStatusResponse
from dinepos.services.table_service import TableService

router = APIRouter()


@router.get("/status")
def get_table_status(db: DbSession, session: RequireKitchen):
    statuses = TableService(db).table_status()
    return list_response([TableStatusResponse.model_validate(s) for s in statuses])


@router.post("", response_model=TableResponse, status_code=201)
def add_table(body: TableCreate, db: DbSession, session: RequireTables):
    return TableService(db).add_table(body.name, body.floor)


@router.delete("/{table_id}")
def remove_table(table_id: str, db: DbSession, session: RequireTables):
    TableService(db).remove_table(table_id, session)
    return {"status": "removed", "table_id": table_id}
