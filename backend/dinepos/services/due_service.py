"""Customer due collection.

A due is the unpaid part of a COMPLETED order. A customer paying towards
their dues has the money spread over their unpaid orders oldest first.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dinepos.core.config import settings
from dinepos.core.exceptions import StoreWriteError, ValidationError
from dinepos.core.money import ZERO, money_sum, to_decimal
from dinepos.db.base import utcnow
from dinepos.models.order import Order, OrderStatus, PaymentMethod
from dinepos.models.shift import Shift
from dinepos.services import audit_service
from dinepos.services.shift_service import ShiftService
from dinepos.services.terminal_session import TerminalSession

logger = logging.getLogger(__name__)


@dataclass
class DueAllocation:
    order_id: str
    applied: Decimal
    remaining_due: Decimal


@dataclass
class DueCollectionResult:
    phone: str
    method: PaymentMethod
    amount: Decimal
    allocations: List[DueAllocation] = field(default_factory=list)
    unallocated: Decimal = ZERO
    shift: Optional[Shift] = None

    @property
    def applied(self) -> Decimal:
        return money_sum(a.applied for a in self.allocations)


class CustomerDueCollector:
    def __init__(self, db: Session):
        self.db = db
        self.shifts = ShiftService(db)

    def outstanding_orders(self, phone: str) -> List[Order]:
        """COMPLETED, not fully paid orders of a customer, oldest first."""
        stmt = (
            select(Order)
            .where(
                Order.customer_phone == phone,
                Order.status == OrderStatus.COMPLETED,
                Order.is_fully_paid.is_(False),
            )
            .order_by(Order.created_at.asc(), Order.id.asc())
        )
        return list(self.db.execute(stmt).scalars())

    def customer_due_total(self, phone: str) -> Decimal:
        return money_sum(order.outstanding for order in self.outstanding_orders(phone))

    def settle_due(
        self,
        phone: str,
        method: PaymentMethod,
        amount: Decimal,
        session: TerminalSession,
    ) -> DueCollectionResult:
        """Apply one incoming payment to the customer's dues, oldest order first.

        Money beyond the total due is not kept as credit. The settling shift is
        credited once with the whole amount taken.
        """
        amount = to_decimal(amount)
        method = PaymentMethod(method)
        if not phone:
            raise ValidationError("Customer phone is required")
        if amount <= 0:
            raise ValidationError("Payment amount must be positive")

        now = utcnow()
        result = DueCollectionResult(phone=phone, method=method, amount=amount)
        remaining = amount
        try:
            for order in self.outstanding_orders(phone):
                if remaining <= settings.paid_epsilon:
                    break
                applied = min(order.outstanding, remaining)
                if applied <= 0:
                    continue
                order.add_payment(method, applied, now)
                order.refresh_payment_state(settings.paid_epsilon)
                remaining -= applied
                result.allocations.append(DueAllocation(order.id, applied, order.outstanding))

            shift = self.shifts.current_shift(session)
            if shift is not None:
                self.shifts.record_due_collection(shift, method, amount)
                result.shift = shift
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Due collection for {phone} failed: {e}")
            raise StoreWriteError("Due payment", e.__class__.__name__) from e

        result.unallocated = max(ZERO, remaining)
        logger.info(f"Collected {amount} {method.value} from {phone} across {len(result.allocations)} orders")
        audit_service.log_action(
            audit_service.DUE_PAYMENT,
            f"Due payment of {amount} via {method.value} from {phone}: "
            + (", ".join(f"{a.order_id} {a.applied}" for a in result.allocations) or "no dues open"),
            actor=session.actor, db=self.db,
        )
        return result
