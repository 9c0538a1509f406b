"""Customer routes: profiles, dues and loyalty balance."""

from typing import Optional

from fastapi import APIRouter, Query, Request

from dinepos.core.rate_limit import limiter
from dinepos.core.rbac import RequireCounter, RequireSettle
from dinepos.core.responses import list_response
from dinepos.db.session import DbSession
from dinepos.schemas.customer import CustomerResponse, CustomerUpdate
from dinepos.schemas.loyalty import (
    CustomerLoyaltyResponse,
    LoyaltyEligibilityResponse,
    LoyaltyTransactionResponse,
)
from dinepos.schemas.order import (
    CustomerDuesResponse,
    DueAllocationResponse,
    DuePaymentRequest,
    DuePaymentResponse,
    OrderResponse,
)
from dinepos.services.customer_service import CustomerService
from dinepos.services.due_service import CustomerDueCollector
from dinepos.services.loyalty_service import LoyaltyLedger, ledger_balance

router = APIRouter()


@router.get("")
def search_customers(
    db: DbSession,
    session: RequireCounter,
    q: Optional[str] = Query(None, description="Part of a name or phone number"),
):
    customers = CustomerService(db).search(q)
    return list_response([CustomerResponse.model_validate(c) for c in customers])


@router.get("/{phone}", response_model=CustomerResponse)
def get_customer(phone: str, db: DbSession, session: RequireCounter):
    return CustomerService(db).get_customer(phone)


@router.patch("/{phone}", response_model=CustomerResponse)
def update_customer(phone: str, body: CustomerUpdate, db: DbSession, session: RequireCounter):
    return CustomerService(db).update_customer(phone, session, **body.model_dump(exclude_unset=True))


@router.get("/{phone}/dues", response_model=CustomerDuesResponse)
def get_dues(phone: str, db: DbSession, session: RequireSettle):
    collector = CustomerDueCollector(db)
    orders = collector.outstanding_orders(phone)
    return CustomerDuesResponse(
        phone=phone,
        total_due=collector.customer_due_total(phone),
        orders=[OrderResponse.model_validate(o) for o in orders],
    )


@router.post("/{phone}/dues/settle", response_model=DuePaymentResponse)
@limiter.limit("30/minute")
def settle_dues(request: Request, phone: str, body: DuePaymentRequest, db: DbSession, session: RequireSettle):
    """Collect a payment against the customer's dues, oldest order first."""
    result = CustomerDueCollector(db).settle_due(phone, body.method, body.amount, session)
    return DuePaymentResponse(
        phone=phone,
        amount=result.amount,
        applied=result.applied,
        unallocated=result.unallocated,
        allocations=[
            DueAllocationResponse(order_id=a.order_id, applied=a.applied, remaining_due=a.remaining_due)
            for a in result.allocations
        ],
    )


@router.get("/{phone}/loyalty", response_model=CustomerLoyaltyResponse)
def get_loyalty(phone: str, db: DbSession, session: RequireSettle):
    customer = LoyaltyLedger(db).require_customer(phone)
    return CustomerLoyaltyResponse(
        phone=customer.phone,
        name=customer.name,
        loyalty_points=customer.loyalty_points,
        ledger_points=ledger_balance(customer.loyalty_history),
        total_points_earned=customer.total_points_earned,
        total_points_redeemed=customer.total_points_redeemed,
        last_visit=customer.last_visit,
        history=[LoyaltyTransactionResponse.model_validate(tx) for tx in customer.loyalty_history],
    )


@router.get("/{phone}/loyalty/eligibility", response_model=LoyaltyEligibilityResponse)
def get_loyalty_eligibility(
    phone: str,
    db: DbSession,
    session: RequireSettle,
    bill_total: float = Query(..., ge=0),
):
    eligibility = LoyaltyLedger(db).eligibility(phone, bill_total)
    return LoyaltyEligibilityResponse.model_validate(eligibility, from_attributes=True)
