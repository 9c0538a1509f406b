"""Cash shift routes."""

from typing import Optional

from fastapi import APIRouter, Request

from dinepos.core.rate_limit import limiter
from dinepos.core.rbac import CurrentSession
from dinepos.db.session import DbSession
from dinepos.schemas.shift import ShiftEndRequest, ShiftResponse, ShiftStartRequest
from dinepos.services.shift_service import ShiftService

router = APIRouter()


@router.post("/start", response_model=ShiftResponse)
@limiter.limit("10/minute")
def start_shift(request: Request, body: ShiftStartRequest, db: DbSession, session: CurrentSession):
    return ShiftService(db).start_shift(session, body.opening_balance)


@router.post("/end", response_model=ShiftResponse)
@limiter.limit("10/minute")
def end_shift(request: Request, body: ShiftEndRequest, db: DbSession, session: CurrentSession):
    return ShiftService(db).end_shift(session, body.actual_cash)


@router.get("/current", response_model=Optional[ShiftResponse])
def current_shift(db: DbSession, session: CurrentSession):
    """The caller's ACTIVE shift, or null."""
    return ShiftService(db).current_shift(session)
