"""Shift cash reconciliation.

A shift tracks what a staff member's drawer should hold: the opening float
plus every cash payment taken while it is ACTIVE. Closing it records the
counted cash and the variance (counted minus expected; negative is short).
"""

import logging
import time
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dinepos.core.exceptions import InvalidTransitionError, StoreWriteError, ValidationError
from dinepos.core.money import ZERO, to_decimal
from dinepos.db.base import utcnow
from dinepos.models.operations import AuditSeverity
from dinepos.models.order import OrderPayment, PaymentMethod
from dinepos.models.shift import Shift, ShiftStatus
from dinepos.services import audit_service
from dinepos.services.terminal_session import TerminalSession, find_active_shift

logger = logging.getLogger(__name__)

_METHOD_BUCKETS = {
    PaymentMethod.CASH: "cash_sales",
    PaymentMethod.UPI: "upi_sales",
    PaymentMethod.CARD: "card_sales",
}


def new_shift_id() -> str:
    return f"SHF{int(time.time() * 1000)}"


def credit_payment(shift: Shift, method: PaymentMethod, amount: Decimal) -> None:
    """Add a payment to its method bucket; cash also lands in the drawer."""
    method = PaymentMethod(method)
    amount = to_decimal(amount)
    bucket = _METHOD_BUCKETS[method]
    setattr(shift, bucket, to_decimal(getattr(shift, bucket)) + amount)
    if method == PaymentMethod.CASH:
        shift.expected_cash = to_decimal(shift.expected_cash) + amount


class ShiftService:
    def __init__(self, db: Session):
        self.db = db

    def current_shift(self, session: TerminalSession) -> Optional[Shift]:
        """The session's ACTIVE shift. Closed shifts are never returned."""
        if not session.is_logged_in:
            return None
        if session.shift_id:
            shift = self.db.get(Shift, session.shift_id)
            if shift is not None and shift.is_active:
                return shift
        return find_active_shift(self.db, session.staff_id)

    def start_shift(self, session: TerminalSession, opening_balance: Decimal) -> Shift:
        if not session.is_logged_in:
            raise ValidationError("Log in before starting a shift")
        opening_balance = to_decimal(opening_balance)
        if opening_balance < 0:
            raise ValidationError("Opening balance cannot be negative")
        if session.shift_id or find_active_shift(self.db, session.staff_id) is not None:
            raise InvalidTransitionError("shift", ShiftStatus.ACTIVE.value, "start")

        shift = Shift(
            id=new_shift_id(),
            staff_id=session.staff_id,
            staff_name=session.staff_name,
            start_time=utcnow(),
            status=ShiftStatus.ACTIVE,
            opening_balance=opening_balance,
            cash_sales=ZERO,
            upi_sales=ZERO,
            card_sales=ZERO,
            total_sales=ZERO,
            expected_cash=opening_balance,
            orders_count=0,
            refunds_total=ZERO,
            discounts_total=ZERO,
        )
        self.db.add(shift)
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreWriteError("Shift start", e.__class__.__name__) from e

        logger.info(f"Shift {shift.id} started by {session.staff_name} with float {opening_balance}")
        audit_service.log_action(
            audit_service.SHIFT_START, f"Shift {shift.id} started with opening balance {opening_balance}",
            actor=session.actor, db=self.db,
        )
        return shift

    def end_shift(self, session: TerminalSession, actual_cash: Decimal) -> Shift:
        shift = self.current_shift(session)
        if shift is None:
            raise InvalidTransitionError("shift", "none", ShiftStatus.CLOSED.value)
        actual_cash = to_decimal(actual_cash)
        if actual_cash < 0:
            raise ValidationError("Counted cash cannot be negative")

        shift.end_time = utcnow()
        shift.status = ShiftStatus.CLOSED
        shift.actual_cash = actual_cash
        shift.variance = actual_cash - to_decimal(shift.expected_cash)
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreWriteError("Shift close", e.__class__.__name__) from e

        severity = AuditSeverity.INFO if shift.variance == 0 else AuditSeverity.WARNING
        audit_service.log_action(
            audit_service.SHIFT_END,
            f"Shift {shift.id} closed: expected {shift.expected_cash}, counted {actual_cash}, "
            f"variance {shift.variance}",
            actor=session.actor, severity=severity, db=self.db,
        )
        return shift

    # ========== FAN-OUT (caller commits) ==========

    def record_settlement(
        self,
        shift: Shift,
        final_total: Decimal,
        discount: Decimal,
        payments: Iterable[OrderPayment],
    ) -> Shift:
        shift.orders_count = (shift.orders_count or 0) + 1
        shift.total_sales = to_decimal(shift.total_sales) + to_decimal(final_total)
        shift.discounts_total = to_decimal(shift.discounts_total) + to_decimal(discount)
        for payment in payments:
            credit_payment(shift, payment.method, payment.amount)
        return shift

    def record_due_collection(self, shift: Shift, method: PaymentMethod, amount: Decimal) -> Shift:
        credit_payment(shift, method, amount)
        return shift
