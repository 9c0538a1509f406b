"""Cash-handling shift model."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Enum as SQLEnum, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from dinepos.core.money import ZERO
from dinepos.db.base import Base, utcnow
from dinepos.models.validators import non_negative


class ShiftStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"


class Shift(Base):
    """One staff member's cash session, from opening float to counted close."""

    __tablename__ = "shifts"

    id: Mapped[str] = mapped_column(String(40), primary_key=True)
    staff_id: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    staff_name: Mapped[str] = mapped_column(String(200), nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[ShiftStatus] = mapped_column(
        SQLEnum(ShiftStatus), default=ShiftStatus.ACTIVE, nullable=False, index=True
    )

    # Money tracking
    opening_balance: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=ZERO, nullable=False)
    cash_sales: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=ZERO, nullable=False)
    upi_sales: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=ZERO, nullable=False)
    card_sales: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=ZERO, nullable=False)
    total_sales: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=ZERO, nullable=False)

    # Closing
    expected_cash: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=ZERO, nullable=False)
    actual_cash: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    variance: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)  # negative = shortage

    # Other stats
    orders_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    refunds_total: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=ZERO, nullable=False)
    discounts_total: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=ZERO, nullable=False)

    @property
    def is_active(self) -> bool:
        return self.status == ShiftStatus.ACTIVE

    @validates('opening_balance', 'cash_sales', 'upi_sales', 'card_sales', 'total_sales',
               'expected_cash', 'actual_cash', 'orders_count', 'refunds_total', 'discounts_total')
    def _validate_non_negative(self, key, value):
        return non_negative(key, value)
