"""Shift schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from dinepos.models.shift import ShiftStatus


class ShiftStartRequest(BaseModel):
    opening_balance: Decimal = Field(Decimal("0"), ge=0)


class ShiftEndRequest(BaseModel):
    actual_cash: Decimal = Field(..., ge=0)


class ShiftResponse(BaseModel):
    id: str
    staff_id: str
    staff_name: str
    start_time: datetime
    end_time: Optional[datetime] = None
    status: ShiftStatus
    opening_balance: Decimal
    cash_sales: Decimal
    upi_sales: Decimal
    card_sales: Decimal
    total_sales: Decimal
    expected_cash: Decimal
    actual_cash: Optional[Decimal] = None
    variance: Optional[Decimal] = None
    orders_count: int
    refunds_total: Decimal
    discounts_total: Decimal

    model_config = {"from_attributes": True}
