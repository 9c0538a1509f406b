"""Order lifecycle routes: kitchen send, kitchen board, settlement, cancel."""

import logging
from typing import List

from fastapi import APIRouter, Request

from dinepos.core.exceptions import NotFoundError
from dinepos.core.rate_limit import limiter
from dinepos.core.rbac import RequireKitchen, RequireOrders, RequireSettle
from dinepos.core.responses import list_response, noop_response
from dinepos.db.session import DbSession
from dinepos.models.catalog import DiningTable, Product
from dinepos.schemas.order import (
    KitchenTicketResponse,
    KotBatchResponse,
    KotSendRequest,
    KotSendResponse,
    KotStatusUpdate,
    OrderItemResponse,
    OrderResponse,
    SettlementQuoteRequest,
    SettlementQuoteResponse,
    SettleRequest,
    SettleResponse,
)
from dinepos.services.cart_service import Cart
from dinepos.services.kitchen_service import KitchenService
from dinepos.services.kot_service import KotSequencer, find_open_order
from dinepos.services.settlement_service import CheckoutSession, SettlementService

logger = logging.getLogger(__name__)

router = APIRouter()


# ==================== Kitchen send ====================

@router.post("/tables/{table_id}/kot")
@limiter.limit("60/minute")
def send_kot(request: Request, table_id: str, body: KotSendRequest, db: DbSession, session: RequireOrders):
    """Send the terminal's cart to the kitchen as one KOT."""
    if db.get(DiningTable, table_id) is None:
        raise NotFoundError("Table", table_id)

    cart = Cart()
    for line in body.lines:
        product = db.get(Product, line.product_id)
        if product is None:
            raise NotFoundError("Product", line.product_id)
        cart.add_line(product, line.variants, line.quantity, line.note)

    kot_id = KotSequencer(db).send_to_kitchen(
        table_id, cart, session,
        customer_name=body.customer_name,
        customer_phone=body.customer_phone,
    )
    if kot_id is None:
        return noop_response("Cart is empty")

    order = find_open_order(db, table_id)
    return KotSendResponse(
        kot_id=kot_id,
        order_id=order.id,
        subtotal=order.subtotal,
        tax=order.tax,
        total=order.total,
    )


@router.get("/tables/{table_id}/order", response_model=OrderResponse)
def get_open_order(table_id: str, db: DbSession, session: RequireKitchen):
    order = find_open_order(db, table_id)
    if order is None:
        raise NotFoundError("Open order for table", table_id)
    return order


# ==================== Kitchen ====================

@router.get("/kitchen/board")
def kitchen_board(db: DbSession, session: RequireKitchen):
    tickets: List[KitchenTicketResponse] = []
    for ticket in KitchenService(db).kitchen_board():
        tickets.append(KitchenTicketResponse(
            order_id=ticket.order_id,
            table_id=ticket.table_id,
            order_status=ticket.order_status,
            created_at=ticket.created_at,
            batches=[
                KotBatchResponse(
                    kot_id=batch.kot_id,
                    is_ready=batch.is_ready,
                    sent_at=batch.sent_at,
                    items=[OrderItemResponse.model_validate(item) for item in batch.items],
                )
                for batch in ticket.batches
            ],
        ))
    return list_response(tickets)


@router.patch("/orders/{order_id}/kots/{kot_id}")
def update_kot_status(order_id: str, kot_id: str, body: KotStatusUpdate, db: DbSession, session: RequireKitchen):
    items = KitchenService(db).update_kot_status(order_id, kot_id, body.status, session)
    if items is None:
        return noop_response(f"KOT #{kot_id} is already {body.status.value}")
    return {"status": body.status.value, "order_id": order_id, "kot_id": kot_id, "items": len(items)}


# ==================== Settlement ====================

@router.post("/tables/{table_id}/settlement/quote")
def quote_settlement(table_id: str, body: SettlementQuoteRequest, db: DbSession, session: RequireSettle):
    quote = SettlementService(db).quote(
        table_id,
        discount_type=body.discount_type,
        discount_value=body.discount_value,
        redeem_points=body.redeem_points,
        customer_phone=body.customer_phone,
    )
    if quote is None:
        return noop_response("Nothing to settle")
    return SettlementQuoteResponse.model_validate(quote)


@router.post("/tables/{table_id}/settle")
@limiter.limit("30/minute")
def settle_table(request: Request, table_id: str, body: SettleRequest, db: DbSession, session: RequireSettle):
    """Settle a table's bill.

    The terminal replays the partial tenders it has taken, then either a final
    tender or ``due=true``. A final tender that still leaves money owing is
    answered with status ``partial`` and nothing is written.
    """
    service = SettlementService(db)
    quote = service.quote(
        table_id,
        discount_type=body.discount_type,
        discount_value=body.discount_value,
        redeem_points=body.redeem_points,
        customer_phone=body.customer_phone,
    )
    if quote is None:
        return noop_response("Nothing to settle")

    checkout = CheckoutSession(quote)
    for tender in body.partial_payments:
        checkout.tender(tender.method, tender.amount)
    if body.tender is not None:
        checkout.tender(body.tender.method, body.tender.amount)

    if not body.due and not checkout.is_settled:
        return SettleResponse(
            status="partial",
            order_id=quote.order_id,
            payable=quote.payable,
            amount_paid=checkout.paid,
            remaining_due=checkout.remaining_due,
        )

    result = service.settle(
        table_id,
        checkout,
        session,
        customer_name=body.customer_name,
        customer_phone=body.customer_phone,
        customer_email=body.customer_email,
        delivery_address=body.delivery_address,
        due=body.due,
    )
    if result is None:
        # another terminal closed the order after it was quoted
        return noop_response("Nothing to settle")
    order = result.order
    return SettleResponse(
        status="settled",
        order_id=order.id,
        payable=order.total,
        amount_paid=order.amount_paid,
        remaining_due=order.outstanding,
        change=result.change,
        is_fully_paid=order.is_fully_paid,
        points_earned=result.points_earned,
        points_redeemed=result.points_redeemed,
    )


@router.post("/orders/{order_id}/cancel", response_model=OrderResponse)
def cancel_order(order_id: str, db: DbSession, session: RequireSettle):
    return SettlementService(db).cancel_order(order_id, session)
