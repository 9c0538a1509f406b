"""Expense ledger model."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, validates

from dinepos.db.base import Base, utcnow
from dinepos.models.validators import positive

EXPENSE_CATEGORIES = (
    "Utilities",
    "Rent",
    "Inventory Purchase",
    "Salaries",
    "Maintenance",
    "Marketing",
    "Other",
)


class Expense(Base):
    """Money paid out of the business. Entries are never edited."""

    __tablename__ = "expenses"

    id: Mapped[str] = mapped_column(String(40), primary_key=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="Other", index=True)
    recorded_by: Mapped[str] = mapped_column(String(200), nullable=False, default="System")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    @validates('amount')
    def _validate_amount(self, key, value):
        return positive(key, value)
