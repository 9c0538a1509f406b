"""Reservation routes."""

from typing import Optional

from fastapi import APIRouter, Query

from dinepos.core.rbac import RequireOrders
from dinepos.core.responses import list_response
from dinepos.db.session import DbSession
from dinepos.models.reservation import ReservationStatus
from dinepos.schemas.reservation import (
    ReservationCreate,
    ReservationResponse,
    ReservationStatusUpdate,
)
from dinepos.services.reservation_service import ReservationService

router = APIRouter()


@router.get("")
def list_reservations(
    db: DbSession,
    session: RequireOrders,
    status: Optional[ReservationStatus] = Query(None),
):
    reservations = ReservationService(db).list_reservations(status)
    return list_response([ReservationResponse.model_validate(r) for r in reservations])


@router.post("", response_model=ReservationResponse, status_code=201)
def add_reservation(body: ReservationCreate, db: DbSession, session: RequireOrders):
    return ReservationService(db).add_reservation(
        table_id=body.table_id,
        customer_name=body.customer_name,
        customer_phone=body.customer_phone,
        reservation_time=body.reservation_time,
        session=session,
        guests=body.guests,
        notes=body.notes,
    )


@router.patch("/{reservation_id}", response_model=ReservationResponse)
def update_reservation(reservation_id: str, body: ReservationStatusUpdate, db: DbSession, session: RequireOrders):
    return ReservationService(db).update_reservation_status(reservation_id, body.status, session)
