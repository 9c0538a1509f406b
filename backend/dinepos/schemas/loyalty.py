"""Loyalty programme schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from dinepos.models.customer import LoyaltyTransactionType


class LoyaltySettingsResponse(BaseModel):
    enabled: bool
    earning_rate: Decimal
    redemption_value: Decimal
    min_points_to_redeem: int
    min_order_value_to_redeem: Decimal
    expiry_months: int

    model_config = {"from_attributes": True}


class LoyaltySettingsUpdate(BaseModel):
    """Partial update; omitted fields keep their value."""
    enabled: Optional[bool] = None
    earning_rate: Optional[Decimal] = Field(None, gt=0)
    redemption_value: Optional[Decimal] = Field(None, gt=0)
    min_points_to_redeem: Optional[int] = Field(None, ge=0)
    min_order_value_to_redeem: Optional[Decimal] = Field(None, ge=0)
    expiry_months: Optional[int] = Field(None, ge=0)


class LoyaltyTransactionResponse(BaseModel):
    id: str
    date: datetime
    type: LoyaltyTransactionType
    points: int
    order_id: Optional[str] = None
    description: Optional[str] = None
    expiry_date: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CustomerLoyaltyResponse(BaseModel):
    phone: str
    name: str
    loyalty_points: int
    ledger_points: int
    total_points_earned: int
    total_points_redeemed: int
    last_visit: Optional[datetime] = None
    history: List[LoyaltyTransactionResponse]


class LoyaltyEligibilityResponse(BaseModel):
    eligible: bool
    points: int
    max_redeemable_points: int
    max_discount: Decimal
    reason: Optional[str] = None
