"""Table and audit log schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class TableStatusResponse(BaseModel):
    table_id: str
    name: str
    floor: str
    is_delivery: bool
    status: str
    order_id: Optional[str] = None
    order_total: Decimal

    model_config = {"from_attributes": True}


class AuditLogResponse(BaseModel):
    id: int
    user_name: str
    action: str
    details: Optional[str] = None
    severity: str
    created_at: datetime

    model_config = {"from_attributes": True}
