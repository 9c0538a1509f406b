"""Order, kitchen and settlement schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from dinepos.models.order import ItemStatus, OrderStatus, PaymentMethod
from dinepos.services.settlement_service import DiscountType


# Kitchen send

class CartLineIn(BaseModel):
    """One cart line as picked on the terminal."""
    product_id: str
    quantity: int = Field(1, ge=1, le=999)
    variants: Optional[Dict[str, str]] = None  # group id -> option id
    note: Optional[str] = Field(None, max_length=500)


class KotSendRequest(BaseModel):
    lines: List[CartLineIn] = Field(default_factory=list)
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None


class KotSendResponse(BaseModel):
    status: str = "sent"
    kot_id: str
    order_id: str
    subtotal: Decimal
    tax: Decimal
    total: Decimal


class KotStatusUpdate(BaseModel):
    status: ItemStatus


# Orders

class OrderItemResponse(BaseModel):
    product_id: str
    name: str
    category: Optional[str] = None
    price: Decimal
    qty: int
    is_veg: bool = False
    variants: Optional[dict] = None
    notes: Optional[str] = None
    kot_id: str
    sent_at: datetime
    status: ItemStatus

    model_config = {"from_attributes": True}


class PaymentResponse(BaseModel):
    method: PaymentMethod
    amount: Decimal
    paid_at: datetime

    model_config = {"from_attributes": True}


class OrderResponse(BaseModel):
    id: str
    table_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    subtotal: Decimal
    tax: Decimal
    discount: Decimal
    discount_note: Optional[str] = None
    total: Decimal
    amount_paid: Decimal
    is_fully_paid: bool
    status: OrderStatus
    shift_id: Optional[str] = None
    staff_name: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []
    payments: List[PaymentResponse] = []

    model_config = {"from_attributes": True}


# Kitchen board

class KotBatchResponse(BaseModel):
    kot_id: str
    is_ready: bool
    sent_at: Optional[datetime] = None
    items: List[OrderItemResponse]


class KitchenTicketResponse(BaseModel):
    order_id: str
    table_id: Optional[str] = None
    order_status: OrderStatus
    created_at: datetime
    batches: List[KotBatchResponse]


# Settlement

class SettlementQuoteRequest(BaseModel):
    discount_type: DiscountType = DiscountType.FLAT
    discount_value: Decimal = Field(Decimal("0"), ge=0)
    redeem_points: bool = False
    customer_phone: Optional[str] = None


class SettlementQuoteResponse(BaseModel):
    order_id: str
    table_id: str
    subtotal: Decimal
    tax: Decimal
    gross_total: Decimal
    manual_discount: Decimal
    loyalty_points: int
    loyalty_discount: Decimal
    total_discount: Decimal
    payable: Decimal
    discount_note: Optional[str] = None

    model_config = {"from_attributes": True}


class TenderIn(BaseModel):
    method: PaymentMethod
    amount: Decimal = Field(..., gt=0)


class SettleRequest(SettlementQuoteRequest):
    """Partial tenders already taken, then the final tender or a DUE close."""
    partial_payments: List[TenderIn] = Field(default_factory=list)
    tender: Optional[TenderIn] = None
    due: bool = False
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    delivery_address: Optional[str] = None


class SettleResponse(BaseModel):
    status: str  # settled / partial
    order_id: str
    payable: Decimal
    amount_paid: Decimal
    remaining_due: Decimal
    change: Decimal = Decimal("0")
    is_fully_paid: bool = False
    points_earned: int = 0
    points_redeemed: int = 0


# Dues

class DuePaymentRequest(BaseModel):
    method: PaymentMethod
    amount: Decimal = Field(..., gt=0)


class DueAllocationResponse(BaseModel):
    order_id: str
    applied: Decimal
    remaining_due: Decimal


class DuePaymentResponse(BaseModel):
    phone: str
    amount: Decimal
    applied: Decimal
    unallocated: Decimal
    allocations: List[DueAllocationResponse]


class CustomerDuesResponse(BaseModel):
    phone: str
    total_due: Decimal
    orders: List[OrderResponse]
