"""Authentication schemas."""

from typing import Optional

from pydantic import BaseModel, Field

from dinepos.core.rbac_policy import StaffRole


class StaffLoginRequest(BaseModel):
    """Terminal login body: staff id and PIN."""

    staff_id: str = Field(..., min_length=1, max_length=20)
    pin: str = Field(..., min_length=4, max_length=8)


class TerminalSessionResponse(BaseModel):
    staff_id: Optional[str] = None
    staff_name: Optional[str] = None
    role: Optional[StaffRole] = None
    shift_id: Optional[str] = None
    requires_shift: bool = False


class Token(BaseModel):
    """JWT token response."""

    access_token: str
    token_type: str = "bearer"
    session: TerminalSessionResponse


class StaffCreate(BaseModel):
    staff_id: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=200)
    pin: str = Field(..., min_length=4, max_length=8)
    role: StaffRole = StaffRole.CASHIER


class StaffResponse(BaseModel):
    id: str
    name: str
    role: StaffRole
    is_active: bool

    model_config = {"from_attributes": True}
