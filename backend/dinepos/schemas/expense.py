"""Expense and finance summary schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class ExpenseCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., gt=0)
    category: str = "Other"


class ExpenseResponse(BaseModel):
    id: str
    description: str
    amount: Decimal
    category: str
    recorded_by: str
    created_at: datetime

    model_config = {"from_attributes": True}


class FinanceSummaryResponse(BaseModel):
    total_sales: Decimal
    total_tax: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    orders_count: int

    model_config = {"from_attributes": True}
