"""Customer profile schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CustomerUpdate(BaseModel):
    """Partial profile update; omitted fields keep their value."""
    name: Optional[str] = Field(None, max_length=200)
    email: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = None
    notes: Optional[str] = None  # VIP, allergies, ...


class CustomerResponse(BaseModel):
    phone: str
    name: str
    email: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    first_visit: Optional[datetime] = None
    last_visit: Optional[datetime] = None
    loyalty_points: int

    model_config = {"from_attributes": True}
