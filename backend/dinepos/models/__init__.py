"""SQLAlchemy models."""

from dinepos.models.catalog import DiningTable, Product, Staff
from dinepos.models.customer import (
    Customer,
    LoyaltySettings,
    LoyaltyTransaction,
    LoyaltyTransactionType,
)
from dinepos.models.expense import EXPENSE_CATEGORIES, Expense
from dinepos.models.operations import AuditLogEntry, AuditSeverity, KotCounter
from dinepos.models.order import (
    ITEM_STATUS_RANK,
    ItemStatus,
    Order,
    OrderItem,
    OrderPayment,
    OrderStatus,
    PaymentMethod,
)
from dinepos.models.reservation import Reservation, ReservationStatus
from dinepos.models.shift import Shift, ShiftStatus

__all__ = [
    "AuditLogEntry",
    "AuditSeverity",
    "Customer",
    "DiningTable",
    "EXPENSE_CATEGORIES",
    "Expense",
    "ITEM_STATUS_RANK",
    "ItemStatus",
    "KotCounter",
    "LoyaltySettings",
    "LoyaltyTransaction",
    "LoyaltyTransactionType",
    "Order",
    "OrderItem",
    "OrderPayment",
    "OrderStatus",
    "PaymentMethod",
    "Product",
    "Reservation",
    "ReservationStatus",
    "Shift",
    "ShiftStatus",
    "Staff",
]
