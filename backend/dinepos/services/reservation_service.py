"""Table reservations."""

import logging
import secrets
import time
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dinepos.core.exceptions import InvalidTransitionError, NotFoundError, StoreWriteError, ValidationError
from dinepos.db.base import utcnow
from dinepos.models.catalog import DiningTable
from dinepos.models.reservation import Reservation, ReservationStatus
from dinepos.services import audit_service
from dinepos.services.terminal_session import TerminalSession

logger = logging.getLogger(__name__)


class ReservationService:
    def __init__(self, db: Session):
        self.db = db

    def list_reservations(self, status: Optional[ReservationStatus] = None) -> List[Reservation]:
        stmt = select(Reservation).order_by(Reservation.reservation_time)
        if status:
            stmt = stmt.where(Reservation.status == status)
        return list(self.db.execute(stmt).scalars())

    def add_reservation(
        self,
        table_id: str,
        customer_name: str,
        customer_phone: str,
        reservation_time: datetime,
        session: TerminalSession,
        guests: int = 2,
        notes: Optional[str] = None,
    ) -> Reservation:
        if self.db.get(DiningTable, table_id) is None:
            raise NotFoundError("Table", table_id)
        if not customer_name or not customer_phone:
            raise ValidationError("Customer name and phone are required")
        if guests <= 0:
            raise ValidationError("Guests must be at least 1")

        reservation = Reservation(
            id=f"RES-{int(time.time() * 1000)}-{secrets.token_hex(2)}",
            table_id=table_id,
            customer_name=customer_name,
            customer_phone=customer_phone,
            reservation_time=reservation_time,
            guests=guests,
            notes=notes,
            status=ReservationStatus.CONFIRMED,
            created_at=utcnow(),
            created_by=session.staff_name,
        )
        self.db.add(reservation)
        self._commit("Reservation")

        audit_service.log_action(
            audit_service.RESERVATION_ADD,
            f"Reservation {reservation.id} for {customer_name} ({guests}) at table {table_id}",
            actor=session.actor, db=self.db,
        )
        return reservation

    def update_reservation_status(
        self,
        reservation_id: str,
        status: ReservationStatus,
        session: TerminalSession,
    ) -> Reservation:
        reservation = self.db.get(Reservation, reservation_id)
        if reservation is None:
            raise NotFoundError("Reservation", reservation_id)
        status = ReservationStatus(status)
        if reservation.status != ReservationStatus.CONFIRMED and reservation.status != status:
            raise InvalidTransitionError("reservation", reservation.status.value, status.value)

        previous = reservation.status
        reservation.status = status
        self._commit("Reservation update")
        audit_service.log_action(
            audit_service.RESERVATION_UPDATE,
            f"Reservation {reservation.id} {previous.value} -> {status.value}",
            actor=session.actor, db=self.db,
        )
        return reservation

    def _commit(self, operation: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreWriteError(operation, e.__class__.__name__) from e
