"""Catalog schemas."""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class ProductCreate(BaseModel):
    id: str = Field(..., min_length=1, max_length=40)
    name: str = Field(..., min_length=1, max_length=200)
    price: Decimal = Field(..., ge=0)
    category: str = "General"
    stock: int = Field(default=0, ge=0)
    tax_rate: Decimal = Field(default=Decimal("5"), ge=0)
    is_veg: bool = False
    variants: Optional[List[dict]] = None


class ProductResponse(BaseModel):
    id: str
    name: str
    price: Decimal
    category: str
    stock: int
    tax_rate: Decimal
    is_veg: bool
    is_available: bool
    variants: Optional[List[dict]] = None

    model_config = {"from_attributes": True}


class TableCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    floor: str = "Ground Floor"


class TableResponse(BaseModel):
    id: str
    name: str
    floor: str
    is_delivery: bool

    model_config = {"from_attributes": True}
