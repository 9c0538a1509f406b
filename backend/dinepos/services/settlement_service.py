"""Settlement engine.

Closing a table's bill: price the discount, take one or more tenders, and
then in a single transaction complete the order, update the customer's
loyalty ledger and credit the settling shift. Either all three land or none.

    quote = service.quote(table_id, discount_type="FLAT", discount_value=20)
    checkout = CheckoutSession(quote)
    checkout.tender(PaymentMethod.CASH, 500)
    result = service.settle(table_id, checkout, session)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dinepos.core.config import settings
from dinepos.core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    PosError,
    StoreWriteError,
    ValidationError,
)
from dinepos.core.money import ZERO, money_sum, round_currency, to_decimal
from dinepos.db.base import utcnow
from dinepos.models.catalog import DiningTable
from dinepos.models.customer import Customer
from dinepos.models.operations import AuditSeverity
from dinepos.models.order import Order, OrderStatus, PaymentMethod
from dinepos.models.shift import Shift
from dinepos.services import audit_service
from dinepos.services.cart_service import Cart
from dinepos.services.kot_service import find_open_order
from dinepos.services.loyalty_service import LoyaltyLedger
from dinepos.services.shift_service import ShiftService
from dinepos.services.terminal_session import TerminalSession

logger = logging.getLogger(__name__)


class DiscountType(str, Enum):
    FLAT = "FLAT"
    PERCENT = "PERCENT"


def manual_discount(discount_type: DiscountType, value: Decimal, total: Decimal) -> Decimal:
    """Flat amounts cap at the bill; percentages cap at 100 and round half-up."""
    value = max(ZERO, to_decimal(value or 0))
    total = to_decimal(total)
    if DiscountType(discount_type) == DiscountType.FLAT:
        return min(value, total)
    return round_currency(total * min(value, Decimal("100")) / 100)


def discount_note(discount_type: DiscountType, manual: Decimal, loyalty_points: int) -> Optional[str]:
    parts = []
    if manual > 0:
        parts.append(f"Manual ({DiscountType(discount_type).value})")
    if loyalty_points > 0:
        parts.append(f"Loyalty ({loyalty_points} pts)")
    return " + ".join(parts) or None


@dataclass
class SettlementQuote:
    """Priced bill for an OPEN order. Nothing is written when quoting."""

    order_id: str
    table_id: str
    subtotal: Decimal
    tax: Decimal
    gross_total: Decimal
    discount_type: DiscountType
    discount_value: Decimal
    manual_discount: Decimal
    redeem_points: bool
    customer_phone: Optional[str]
    loyalty_points: int
    loyalty_discount: Decimal
    total_discount: Decimal
    payable: Decimal
    already_paid: Decimal
    discount_note: Optional[str]

    @property
    def amount_due(self) -> Decimal:
        return max(ZERO, self.payable - self.already_paid)


@dataclass
class PendingPayment:
    method: PaymentMethod
    amount: Decimal
    paid_at: datetime


@dataclass
class TenderResult:
    payment: Optional[PendingPayment]
    is_final: bool
    change: Decimal
    remaining: Decimal


@dataclass
class CheckoutSession:
    """Tenders taken at the counter for one quote, before anything is written.

    A tender that covers what is left becomes the final payment of exactly
    that amount and the rest is change. A smaller tender is kept as a partial
    payment and the operator is asked for another.
    """

    quote: SettlementQuote
    payments: List[PendingPayment] = field(default_factory=list)
    change: Decimal = ZERO

    @property
    def paid(self) -> Decimal:
        return money_sum(p.amount for p in self.payments)

    @property
    def remaining_due(self) -> Decimal:
        return max(ZERO, self.quote.amount_due - self.paid)

    @property
    def is_settled(self) -> bool:
        return self.remaining_due <= settings.paid_epsilon

    def tender(self, method: PaymentMethod, amount: Decimal) -> TenderResult:
        amount = to_decimal(amount)
        if amount <= 0:
            raise ValidationError("Tendered amount must be positive")
        method = PaymentMethod(method)
        remaining = self.remaining_due

        if remaining <= 0:
            self.change = amount
            return TenderResult(None, True, amount, ZERO)

        if amount >= remaining:
            payment = PendingPayment(method, remaining, utcnow())
            self.payments.append(payment)
            self.change = amount - remaining
            return TenderResult(payment, True, self.change, ZERO)

        payment = PendingPayment(method, amount, utcnow())
        self.payments.append(payment)
        return TenderResult(payment, False, ZERO, self.remaining_due)

    def remove_payment(self, index: int) -> PendingPayment:
        try:
            payment = self.payments.pop(index)
        except IndexError:
            raise NotFoundError("Payment", str(index)) from None
        self.change = ZERO
        return payment


@dataclass
class SettlementResult:
    order: Order
    change: Decimal
    customer: Optional[Customer] = None
    shift: Optional[Shift] = None
    points_earned: int = 0
    points_redeemed: int = 0


class SettlementService:
    def __init__(self, db: Session):
        self.db = db
        self.loyalty = LoyaltyLedger(db)
        self.shifts = ShiftService(db)

    def quote(
        self,
        table_id: str,
        discount_type: DiscountType = DiscountType.FLAT,
        discount_value: Decimal = ZERO,
        redeem_points: bool = False,
        customer_phone: Optional[str] = None,
    ) -> Optional[SettlementQuote]:
        """Price the table's OPEN order; None when there is nothing to settle."""
        order = find_open_order(self.db, table_id)
        if order is None:
            return None

        customer_phone = (customer_phone or order.customer_phone or "").strip() or None
        gross = to_decimal(order.subtotal) + to_decimal(order.tax)
        manual = manual_discount(discount_type, discount_value, gross)

        points = 0
        loyalty_value = ZERO
        if redeem_points and customer_phone:
            eligibility = self.loyalty.eligibility(customer_phone, gross)
            if eligibility.eligible:
                points = eligibility.max_redeemable_points
                loyalty_value = eligibility.max_discount

        total_discount = min(gross, manual + loyalty_value)
        return SettlementQuote(
            order_id=order.id,
            table_id=table_id,
            subtotal=to_decimal(order.subtotal),
            tax=to_decimal(order.tax),
            gross_total=gross,
            discount_type=DiscountType(discount_type),
            discount_value=to_decimal(discount_value or 0),
            manual_discount=manual,
            redeem_points=redeem_points,
            customer_phone=customer_phone,
            loyalty_points=points,
            loyalty_discount=loyalty_value,
            total_discount=total_discount,
            payable=max(ZERO, gross - total_discount),
            already_paid=to_decimal(order.amount_paid),
            discount_note=discount_note(discount_type, manual, points),
        )

    def settle(
        self,
        table_id: str,
        checkout: CheckoutSession,
        session: TerminalSession,
        customer_name: Optional[str] = None,
        customer_phone: Optional[str] = None,
        customer_email: Optional[str] = None,
        delivery_address: Optional[str] = None,
        cart: Optional[Cart] = None,
        due: bool = False,
    ) -> Optional[SettlementResult]:
        """Close the table's OPEN order.

        With ``due=True`` whatever was tendered is recorded and the shortfall
        stays outstanding against the customer's phone. Returns None when the
        table has no OPEN order.
        """
        if cart is not None and not cart.is_empty:
            raise ValidationError("Send or clear the cart before settling")

        order = find_open_order(self.db, table_id)
        if order is None:
            return None

        quote = checkout.quote
        fresh = self.quote(
            table_id,
            discount_type=quote.discount_type,
            discount_value=quote.discount_value,
            redeem_points=quote.redeem_points,
            customer_phone=quote.customer_phone,
        )
        if fresh.order_id != quote.order_id or fresh.payable != quote.payable:
            raise ValidationError("The bill changed since it was quoted, quote it again")

        # the phone and name taken when the KOT went out count unless overridden here
        customer_phone = (customer_phone or quote.customer_phone or order.customer_phone or "").strip() or None
        customer_name = customer_name or order.customer_name
        if quote.loyalty_points and customer_phone != quote.customer_phone:
            raise ValidationError("Loyalty points can only be redeemed for the quoted customer")

        table = self.db.get(DiningTable, table_id)
        if table is not None and table.is_delivery and not (delivery_address or "").strip():
            raise ValidationError("Delivery address is required for delivery orders")

        remaining = checkout.remaining_due
        if due:
            if remaining > settings.paid_epsilon and not customer_phone:
                raise ValidationError("Customer phone is required to leave an amount due")
        elif remaining > settings.paid_epsilon:
            raise ValidationError(f"Payment incomplete, {remaining} still due")

        now = utcnow()
        config = self.loyalty.get_settings()
        shift = self.shifts.current_shift(session)
        customer = None
        earned = 0
        try:
            order.discount = quote.total_discount
            order.discount_note = quote.discount_note
            order.recompute_totals(settings.tax_rate)
            for pending in checkout.payments:
                order.add_payment(pending.method, pending.amount, pending.paid_at)
            order.refresh_payment_state(settings.paid_epsilon)
            order.status = OrderStatus.COMPLETED
            order.completed_at = now
            if customer_name:
                order.customer_name = customer_name
            if customer_phone:
                order.customer_phone = customer_phone
            if customer_email:
                order.customer_email = customer_email
            if delivery_address:
                order.delivery_address = delivery_address
            if shift is not None:
                order.shift_id = shift.id
            if session.is_logged_in:
                order.staff_id = session.staff_id
                order.staff_name = session.staff_name

            if config.enabled and customer_phone:
                before = 0
                existing = self.loyalty.get_customer(customer_phone)
                if existing is not None:
                    before = existing.total_points_earned
                customer = self.loyalty.record_settlement(
                    customer_phone,
                    order.id,
                    final_total=to_decimal(order.total),
                    fully_paid=order.is_fully_paid,
                    redeemed_points=quote.loyalty_points,
                    customer_name=customer_name,
                    customer_email=customer_email,
                    delivery_address=delivery_address,
                    now=now,
                )
                earned = customer.total_points_earned - before

            if shift is not None:
                self.shifts.record_settlement(shift, order.total, order.discount, order.payments)

            self.db.commit()
        except PosError:
            self.db.rollback()
            raise
        except ValueError as e:
            self.db.rollback()
            raise ValidationError(str(e)) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Settlement of order {order.id} failed: {e}")
            raise StoreWriteError("Settlement transaction", e.__class__.__name__) from e

        status = "paid" if order.is_fully_paid else f"due {order.outstanding}"
        logger.info(f"Order {order.id} settled at table {table_id}: total {order.total}, {status}")
        audit_service.log_action(
            audit_service.ORDER_SETTLED,
            f"Order {order.id} (table {table_id}) settled for {order.total}, "
            f"paid {order.amount_paid}, {status}"
            + (f", discount {order.discount} [{order.discount_note}]" if order.discount else ""),
            actor=session.actor,
            severity=AuditSeverity.INFO if order.is_fully_paid else AuditSeverity.WARNING,
            db=self.db,
        )
        return SettlementResult(
            order=order,
            change=checkout.change,
            customer=customer,
            shift=shift,
            points_earned=earned,
            points_redeemed=quote.loyalty_points if customer is not None else 0,
        )

    def cancel_order(self, order_id: str, session: TerminalSession) -> Order:
        """Abandon an OPEN order. Cancelled orders count for nothing."""
        order = self.db.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        if order.status != OrderStatus.OPEN:
            raise InvalidTransitionError("order", order.status.value, OrderStatus.CANCELLED.value)

        order.status = OrderStatus.CANCELLED
        order.completed_at = utcnow()
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreWriteError("Order cancellation", e.__class__.__name__) from e

        audit_service.log_action(
            audit_service.ORDER_CANCELLED,
            f"Order {order.id} (table {order.table_id}) cancelled with total {order.total}",
            actor=session.actor, severity=AuditSeverity.WARNING, db=self.db,
        )
        return order
