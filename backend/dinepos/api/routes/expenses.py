"""Expense ledger and profit summary routes."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Query

from dinepos.core.rbac import RequireCounter, RequireSettings
from dinepos.core.responses import list_response
from dinepos.db.session import DbSession
from dinepos.schemas.expense import ExpenseCreate, ExpenseResponse, FinanceSummaryResponse
from dinepos.services.expense_service import ExpenseService

router = APIRouter()


@router.post("", response_model=ExpenseResponse, status_code=201)
def add_expense(body: ExpenseCreate, db: DbSession, session: RequireCounter):
    return ExpenseService(db).add_expense(body.description, body.amount, session, category=body.category)


@router.get("")
def list_expenses(
    db: DbSession,
    session: RequireSettings,
    since: Optional[datetime] = Query(None),
    until: Optional[datetime] = Query(None),
):
    expenses = ExpenseService(db).list_expenses(since, until)
    return list_response([ExpenseResponse.model_validate(e) for e in expenses])


@router.get("/summary", response_model=FinanceSummaryResponse)
def finance_summary(
    db: DbSession,
    session: RequireSettings,
    since: Optional[datetime] = Query(None),
    until: Optional[datetime] = Query(None),
):
    """Completed sales less tax and expenses over the period."""
    return ExpenseService(db).finance_summary(since, until)
