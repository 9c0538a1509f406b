"""Customer and loyalty ledger models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from dinepos.db.base import Base, TimestampMixin, utcnow
from dinepos.models.validators import non_negative, positive


class LoyaltyTransactionType(str, Enum):
    EARNED = "EARNED"
    REDEEMED = "REDEEMED"
    EXPIRED = "EXPIRED"
    ADJUSTMENT = "ADJUSTMENT"


class Customer(Base, TimestampMixin):
    """Customer keyed by phone number; created lazily at settlement."""

    __tablename__ = "customers"

    phone: Mapped[str] = mapped_column(String(32), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, default="Guest")
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # VIP, allergies, ...

    first_visit: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_visit: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Loyalty: running balance kept in step with the ledger inside one transaction
    loyalty_points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_points_earned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_points_redeemed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    loyalty_history: Mapped[List["LoyaltyTransaction"]] = relationship(
        "LoyaltyTransaction", back_populates="customer", cascade="all, delete-orphan",
        order_by="LoyaltyTransaction.seq",
    )

    @validates('loyalty_points', 'total_points_earned', 'total_points_redeemed')
    def _validate_points(self, key, value):
        return non_negative(key, value)


class LoyaltyTransaction(Base):
    """Immutable loyalty ledger entry. ``points`` is a magnitude; the type gives the sign."""

    __tablename__ = "loyalty_transactions"

    seq: Mapped[int] = mapped_column(primary_key=True)
    id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    customer_phone: Mapped[str] = mapped_column(
        ForeignKey("customers.phone", ondelete="CASCADE"), nullable=False, index=True
    )
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    type: Mapped[LoyaltyTransactionType] = mapped_column(SQLEnum(LoyaltyTransactionType), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    order_id: Mapped[Optional[str]] = mapped_column(String(40), nullable=True, index=True)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    expiry_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    customer: Mapped["Customer"] = relationship("Customer", back_populates="loyalty_history")

    @validates('points')
    def _validate_points(self, key, value):
        return positive(key, value)


class LoyaltySettings(Base):
    """Process-wide loyalty programme configuration (single row, id=1)."""

    __tablename__ = "loyalty_settings"

    id: Mapped[int] = mapped_column(primary_key=True, default=1)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    earning_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    redemption_value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    min_points_to_redeem: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    min_order_value_to_redeem: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    expiry_months: Mapped[int] = mapped_column(Integer, default=12, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    @validates('earning_rate', 'redemption_value')
    def _validate_rates(self, key, value):
        return positive(key, value)

    @validates('min_points_to_redeem', 'min_order_value_to_redeem', 'expiry_months')
    def _validate_thresholds(self, key, value):
        return non_negative(key, value)
