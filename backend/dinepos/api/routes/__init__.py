"""API routes."""

from fastapi import APIRouter

from dinepos.api.routes import (
    audit_logs,
    auth,
    customers,
    expenses,
    loyalty,
    orders,
    products,
    reservations,
    shifts,
    staff,
    tables,
)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(shifts.router, prefix="/shifts", tags=["shifts"])
# tables.router before orders.router: /tables/status must not be read as a table id
api_router.include_router(tables.router, prefix="/tables", tags=["tables"])
api_router.include_router(orders.router, tags=["orders", "kitchen"])
api_router.include_router(products.router, prefix="/products", tags=["products"])
api_router.include_router(customers.router, prefix="/customers", tags=["customers"])
api_router.include_router(expenses.router, prefix="/expenses", tags=["expenses"])
api_router.include_router(loyalty.router, prefix="/loyalty", tags=["loyalty"])
api_router.include_router(reservations.router, prefix="/reservations", tags=["reservations"])
api_router.include_router(audit_logs.router, prefix="/audit-logs", tags=["audit"])
api_router.include_router(staff.router, prefix="/staff", tags=["staff"])
