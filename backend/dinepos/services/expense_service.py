"""Expense ledger and the profit figure built on it.

Net profit is completed sales, less the tax collected on them, less the
expenses recorded over the same period. Open and cancelled orders are not
sales.
"""

import logging
import secrets
import time
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dinepos.core.exceptions import StoreWriteError, ValidationError
from dinepos.core.money import to_decimal
from dinepos.db.base import utcnow
from dinepos.models.expense import EXPENSE_CATEGORIES, Expense
from dinepos.models.order import Order, OrderStatus
from dinepos.services import audit_service
from dinepos.services.terminal_session import TerminalSession

logger = logging.getLogger(__name__)


@dataclass
class FinanceSummary:
    total_sales: Decimal
    total_tax: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    orders_count: int


class ExpenseService:
    def __init__(self, db: Session):
        self.db = db

    def add_expense(
        self,
        description: str,
        amount: Decimal,
        session: TerminalSession,
        category: str = "Other",
    ) -> Expense:
        description = (description or "").strip()
        if not description:
            raise ValidationError("Expense description is required")
        amount = to_decimal(amount)
        if amount <= 0:
            raise ValidationError("Expense amount must be positive")
        if category not in EXPENSE_CATEGORIES:
            raise ValidationError(f"Unknown expense category '{category}'")

        expense = Expense(
            id=f"EXP-{int(time.time() * 1000)}-{secrets.token_hex(2)}",
            description=description,
            amount=amount,
            category=category,
            recorded_by=session.actor,
            created_at=utcnow(),
        )
        self.db.add(expense)
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreWriteError("Expense", e.__class__.__name__) from e

        logger.info(f"Expense {expense.id} of {amount} recorded under {category}")
        audit_service.log_action(
            audit_service.EXPENSE_ADD, f"Expense {description} ({category}) of {amount}",
            actor=session.actor, db=self.db,
        )
        return expense

    def list_expenses(
        self,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[Expense]:
        """Newest first."""
        stmt = select(Expense).order_by(Expense.created_at.desc())
        if since is not None:
            stmt = stmt.where(Expense.created_at >= since)
        if until is not None:
            stmt = stmt.where(Expense.created_at < until)
        return list(self.db.execute(stmt).scalars())

    def finance_summary(
        self,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> FinanceSummary:
        sales = select(
            func.coalesce(func.sum(Order.total), 0),
            func.coalesce(func.sum(Order.tax), 0),
            func.count(Order.id),
        ).where(Order.status == OrderStatus.COMPLETED)
        spent = select(func.coalesce(func.sum(Expense.amount), 0))
        if since is not None:
            sales = sales.where(Order.completed_at >= since)
            spent = spent.where(Expense.created_at >= since)
        if until is not None:
            sales = sales.where(Order.completed_at < until)
            spent = spent.where(Expense.created_at < until)

        total_sales, total_tax, orders_count = self.db.execute(sales).one()
        total_sales = to_decimal(total_sales)
        total_tax = to_decimal(total_tax)
        total_expenses = to_decimal(self.db.execute(spent).scalar_one())
        return FinanceSummary(
            total_sales=total_sales,
            total_tax=total_tax,
            total_expenses=total_expenses,
            net_profit=total_sales - total_tax - total_expenses,
            orders_count=orders_count,
        )
