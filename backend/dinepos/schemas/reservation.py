"""Reservation schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from dinepos.models.reservation import ReservationStatus


class ReservationCreate(BaseModel):
    table_id: str
    customer_name: str = Field(..., min_length=1, max_length=200)
    customer_phone: str = Field(..., min_length=3, max_length=32)
    reservation_time: datetime
    guests: int = Field(2, ge=1, le=100)
    notes: Optional[str] = None


class ReservationStatusUpdate(BaseModel):
    status: ReservationStatus


class ReservationResponse(BaseModel):
    id: str
    table_id: str
    customer_name: str
    customer_phone: str
    reservation_time: datetime
    guests: int
    notes: Optional[str] = None
    status: ReservationStatus
    created_at: datetime
    created_by: Optional[str] = None

    model_config = {"from_attributes": True}
