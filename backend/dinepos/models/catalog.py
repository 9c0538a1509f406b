"""Catalog models - products, dining tables and staff."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import JSON, Boolean, Enum as SQLEnum, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from dinepos.core.rbac_policy import StaffRole
from dinepos.db.base import Base, TimestampMixin
from dinepos.models.validators import non_negative, validate_list_of_dicts


class Product(Base, TimestampMixin):
    """A sellable menu item.

    ``variants`` holds the variant groups as JSON::

        [{"id": "v1", "name": "Size",
          "options": [{"id": "o1", "name": "Regular", "price_modifier": "0"}]}]

    Orders never reference a product live; they copy the price at add time.
    """

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(40), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="General")
    stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # 0 = unavailable
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("5"), nullable=False)
    is_veg: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    variants: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    @property
    def is_available(self) -> bool:
        return (self.stock or 0) > 0

    def variant_group(self, group_id: str) -> Optional[dict]:
        for group in self.variants or []:
            if group.get("id") == group_id:
                return group
        return None

    @validates('price', 'tax_rate')
    def _validate_amounts(self, key, value):
        return non_negative(key, value)

    @validates('variants')
    def _validate_variants(self, key, value):
        return validate_list_of_dicts(key, value)


class DiningTable(Base):
    """Restaurant table (including virtual ones such as Delivery or Takeaway)."""

    __tablename__ = "tables"

    id: Mapped[str] = mapped_column(String(60), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    floor: Mapped[str] = mapped_column(String(100), nullable=False, default="Ground Floor")

    @property
    def is_delivery(self) -> bool:
        label = f"{self.name} {self.floor}".lower()
        return "delivery" in label


class Staff(Base, TimestampMixin):
    """Staff member who can log in to a terminal."""

    __tablename__ = "staff"

    id: Mapped[str] = mapped_column(String(20), primary_key=True)  # e.g. ST123
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    pin_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[StaffRole] = mapped_column(SQLEnum(StaffRole), default=StaffRole.CASHIER, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
