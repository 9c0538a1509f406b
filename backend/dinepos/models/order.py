"""Order models - the running bill of a table, its kitchen lines and payments."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from dinepos.core.money import ZERO, money_sum, round_currency, to_decimal
from dinepos.db.base import Base, utcnow
from dinepos.models.validators import non_negative, positive, validate_dict


class OrderStatus(str, Enum):
    """Status of an order."""

    OPEN = "OPEN"  # table is eating, KOTs may still arrive
    COMPLETED = "COMPLETED"  # bill closed (fully paid or with an outstanding due)
    CANCELLED = "CANCELLED"


class ItemStatus(str, Enum):
    """Kitchen status of an order line."""

    KITCHEN = "KITCHEN"
    READY = "READY"
    SERVED = "SERVED"


ITEM_STATUS_RANK = {
    ItemStatus.KITCHEN: 0,
    ItemStatus.READY: 1,
    ItemStatus.SERVED: 2,
}


class PaymentMethod(str, Enum):
    """Immediate payment methods."""

    CASH = "CASH"
    CARD = "CARD"
    UPI = "UPI"


class Order(Base):
    """A table's bill.

    Money figures are derived: call ``recompute_totals`` after touching items
    or discount and ``refresh_payment_state`` after touching payments.
    """

    __tablename__ = "orders"
    __table_args__ = (
        # at most one OPEN order per table
        Index(
            "uq_orders_open_table",
            "table_id",
            unique=True,
            sqlite_where=text("status = 'OPEN'"),
            postgresql_where=text("status = 'OPEN'"),
        ),
    )

    id: Mapped[str] = mapped_column(String(40), primary_key=True)
    # plain string, not a FK: removing a table keeps its history
    table_id: Mapped[Optional[str]] = mapped_column(String(60), nullable=True, index=True)

    customer_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True, index=True)
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    delivery_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=ZERO, nullable=False)
    tax: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=ZERO, nullable=False)
    discount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=ZERO, nullable=False)
    discount_note: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=ZERO, nullable=False)

    amount_paid: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=ZERO, nullable=False)
    is_fully_paid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    status: Mapped[OrderStatus] = mapped_column(
        SQLEnum(OrderStatus), default=OrderStatus.OPEN, nullable=False, index=True
    )

    shift_id: Mapped[Optional[str]] = mapped_column(String(40), nullable=True, index=True)
    staff_id: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    staff_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )
    payments: Mapped[List["OrderPayment"]] = relationship(
        "OrderPayment", back_populates="order", cascade="all, delete-orphan",
        order_by="OrderPayment.position",
    )

    @property
    def outstanding(self) -> Decimal:
        return max(ZERO, to_decimal(self.total) - to_decimal(self.amount_paid))

    def recompute_totals(self, tax_rate: Decimal) -> None:
        """Derive subtotal, tax and total from the full item list."""
        self.subtotal = money_sum(item.line_total for item in self.items)
        self.tax = round_currency(self.subtotal * to_decimal(tax_rate))
        self.total = self.subtotal + self.tax - to_decimal(self.discount or ZERO)

    def refresh_payment_state(self, epsilon: Decimal) -> None:
        self.amount_paid = money_sum(p.amount for p in self.payments)
        self.is_fully_paid = self.amount_paid >= to_decimal(self.total) - to_decimal(epsilon)

    def add_payment(self, method: PaymentMethod, amount: Decimal, paid_at: datetime) -> "OrderPayment":
        payment = OrderPayment(
            method=PaymentMethod(method),
            amount=to_decimal(amount),
            paid_at=paid_at,
            position=len(self.payments),
        )
        self.payments.append(payment)
        return payment

    def items_for_kot(self, kot_id: str) -> List["OrderItem"]:
        return [item for item in self.items if item.kot_id == kot_id]

    @validates('subtotal', 'tax', 'discount', 'total', 'amount_paid')
    def _validate_amounts(self, key, value):
        return non_negative(key, value)


class OrderItem(Base):
    """A priced line sent to the kitchen as part of one KOT batch."""

    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[str] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    product_id: Mapped[str] = mapped_column(String(40), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)  # unit price incl. variants
    qty: Mapped[int] = mapped_column(Integer, nullable=False)
    tax_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    is_veg: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    variants: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)  # group id -> option snapshot
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    kot_id: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    status: Mapped[ItemStatus] = mapped_column(
        SQLEnum(ItemStatus), default=ItemStatus.KITCHEN, nullable=False
    )

    order: Mapped["Order"] = relationship("Order", back_populates="items")

    @property
    def line_total(self) -> Decimal:
        return to_decimal(self.price) * self.qty

    @validates('qty')
    def _validate_qty(self, key, value):
        return positive(key, value)

    @validates('price')
    def _validate_price(self, key, value):
        # variant deltas may be negative, the resolved unit price may not
        return non_negative(key, value)

    @validates('variants')
    def _validate_variants(self, key, value):
        return validate_dict(key, value)


class OrderPayment(Base):
    """Payment appended to an order. Never updated once written."""

    __tablename__ = "order_payments"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[str] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    method: Mapped[PaymentMethod] = mapped_column(SQLEnum(PaymentMethod), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    paid_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    order: Mapped["Order"] = relationship("Order", back_populates="payments")

    @validates('amount')
    def _validate_amount(self, key, value):
        return positive(key, value)
