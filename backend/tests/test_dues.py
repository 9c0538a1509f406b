"""Tests for collecting customer dues."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from dinepos.core.exceptions import ValidationError
from dinepos.models.order import Order, OrderStatus, PaymentMethod
from dinepos.models.shift import Shift
from dinepos.services.due_service import CustomerDueCollector
from dinepos.services.settlement_service import CheckoutSession, SettlementService

PHONE = "9876500001"


def completed_order(order_id, total, created_at, phone=PHONE):
    return Order(
        id=order_id, table_id="T1", status=OrderStatus.COMPLETED,
        subtotal=total, tax=Decimal("0"), discount=Decimal("0"), total=total,
        amount_paid=Decimal("0"), is_fully_paid=False,
        customer_phone=phone, created_at=created_at, completed_at=created_at,
    )


@pytest.fixture
def two_dues(db_session):
    base = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    older = completed_order("ORD-old", Decimal("100"), base)
    newer = completed_order("ORD-new", Decimal("200"), base + timedelta(days=1))
    other = completed_order("ORD-other", Decimal("500"), base, phone="9000000000")
    db_session.add_all([newer, older, other])
    db_session.commit()
    return older, newer


class TestOutstanding:
    def test_oldest_first(self, db_session, two_dues):
        collector = CustomerDueCollector(db_session)
        assert [o.id for o in collector.outstanding_orders(PHONE)] == ["ORD-old", "ORD-new"]
        assert collector.customer_due_total(PHONE) == Decimal("300")

    def test_settled_due_order_is_counted(self, db_session, shift_session, send_kot):
        send_kot("T1", shift_session, {"A": 2, "B": 1})
        service = SettlementService(db_session)
        checkout = CheckoutSession(service.quote("T1"))
        checkout.tender(PaymentMethod.CASH, Decimal("63"))
        service.settle("T1", checkout, shift_session, customer_phone=PHONE, due=True)

        assert CustomerDueCollector(db_session).customer_due_total(PHONE) == Decimal("200")


class TestSettleDue:
    def test_fifo_allocation(self, db_session, shift_session, two_dues):
        older, newer = two_dues
        result = CustomerDueCollector(db_session).settle_due(
            PHONE, PaymentMethod.CASH, Decimal("150"), shift_session,
        )

        assert [(a.order_id, a.applied) for a in result.allocations] == [
            ("ORD-old", Decimal("100")),
            ("ORD-new", Decimal("50")),
        ]
        assert older.is_fully_paid
        assert older.amount_paid == Decimal("100")
        assert not newer.is_fully_paid
        assert newer.outstanding == Decimal("150")
        assert result.unallocated == Decimal("0")

    def test_shift_credited_once(self, db_session, shift_session, two_dues):
        CustomerDueCollector(db_session).settle_due(PHONE, PaymentMethod.CASH, Decimal("150"), shift_session)

        shift = db_session.get(Shift, shift_session.shift_id)
        assert shift.cash_sales == Decimal("150")
        assert shift.expected_cash == Decimal("1150")
        # collecting a due is not a new sale
        assert shift.orders_count == 0
        assert shift.total_sales == Decimal("0")

    def test_upi_does_not_touch_drawer(self, db_session, shift_session, two_dues):
        CustomerDueCollector(db_session).settle_due(PHONE, PaymentMethod.UPI, Decimal("100"), shift_session)

        shift = db_session.get(Shift, shift_session.shift_id)
        assert shift.upi_sales == Decimal("100")
        assert shift.expected_cash == Decimal("1000")

    def test_overpayment_left_unallocated(self, db_session, shift_session, two_dues):
        result = CustomerDueCollector(db_session).settle_due(
            PHONE, PaymentMethod.CARD, Decimal("400"), shift_session,
        )

        assert result.applied == Decimal("300")
        assert result.unallocated == Decimal("100")
        assert CustomerDueCollector(db_session).customer_due_total(PHONE) == Decimal("0")

    def test_other_customers_untouched(self, db_session, shift_session, two_dues):
        CustomerDueCollector(db_session).settle_due(PHONE, PaymentMethod.CASH, Decimal("300"), shift_session)
        other = db_session.get(Order, "ORD-other")
        assert other.amount_paid == Decimal("0")

    def test_payment_appended_to_order(self, db_session, shift_session, two_dues):
        older, _ = two_dues
        CustomerDueCollector(db_session).settle_due(PHONE, PaymentMethod.UPI, Decimal("40"), shift_session)

        assert [(p.method, p.amount) for p in older.payments] == [(PaymentMethod.UPI, Decimal("40"))]

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-10")])
    def test_non_positive_amount_rejected(self, db_session, shift_session, two_dues, amount):
        with pytest.raises(ValidationError):
            CustomerDueCollector(db_session).settle_due(PHONE, PaymentMethod.CASH, amount, shift_session)
