"""Menu catalog routes."""

from fastapi import APIRouter

from dinepos.core.rbac import RequireKitchen, RequireSettings
from dinepos.core.responses import list_response
from dinepos.db.session import DbSession
from dinepos.schemas.catalog import ProductCreate, ProductResponse
from dinepos.services.table_service import TableService

router = APIRouter()


@router.get("")
def list_products(db: DbSession, session: RequireKitchen):
    products = TableService(db).list_products()
    return list_response([ProductResponse.model_validate(p) for p in products])


@router.post("", response_model=ProductResponse, status_code=201)
def add_product(body: ProductCreate, db: DbSession, session: RequireSettings):
    fields = body.model_dump(exclude={"id", "name", "price"})
    return TableService(db).add_product(body.id, body.name, body.price, **fields)
