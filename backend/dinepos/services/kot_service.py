"""KOT sequencing: sending a cart to the kitchen.

Each send becomes one Kitchen Order Ticket numbered from a per-day counter
and is appended to the table's running OPEN order, creating that order when
the table has none.
"""

import logging
import secrets
import time
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from dinepos.core.config import settings
from dinepos.core.exceptions import StoreWriteError, ValidationError
from dinepos.db.base import utcnow
from dinepos.models.operations import KotCounter
from dinepos.models.order import ItemStatus, Order, OrderItem, OrderStatus
from dinepos.services import audit_service
from dinepos.services.cart_service import Cart
from dinepos.services.change_feed import mark_touched
from dinepos.services.terminal_session import TerminalSession

logger = logging.getLogger(__name__)


def local_date_key(now: datetime) -> str:
    """Calendar day of the restaurant, ``YYYY-MM-DD``."""
    return now.astimezone(ZoneInfo(settings.timezone)).strftime("%Y-%m-%d")


def fallback_kot_id() -> str:
    return f"KOT-{str(int(time.time() * 1000))[-4:]}"


def new_order_id() -> str:
    return f"ORD-{int(time.time() * 1000)}-{secrets.token_hex(2)}"


def find_open_order(db: Session, table_id: str) -> Optional[Order]:
    stmt = select(Order).where(Order.table_id == table_id, Order.status == OrderStatus.OPEN)
    return db.execute(stmt).scalars().first()


class KotSequencer:
    """Sends carts to the kitchen for one terminal request."""

    def __init__(self, db: Session):
        self.db = db

    def next_kot_id(self, now: Optional[datetime] = None) -> str:
        """Increment-or-initialize today's counter.

        The increment is a single UPDATE, so two terminals never read the same
        value. A failure here must not block the kitchen, so it degrades to a
        timestamp-based id.
        """
        date_key = local_date_key(now or utcnow())
        try:
            with self.db.begin_nested():
                result = self.db.execute(
                    update(KotCounter)
                    .where(KotCounter.date_key == date_key)
                    .values(value=KotCounter.value + 1)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    self.db.add(KotCounter(date_key=date_key, value=1))
                    self.db.flush()
                    value = 1
                else:
                    value = self.db.execute(
                        select(KotCounter.value).where(KotCounter.date_key == date_key)
                    ).scalar_one()
        except SQLAlchemyError as e:
            kot_id = fallback_kot_id()
            logger.warning(f"KOT counter transaction failed for {date_key}, using {kot_id}: {e}")
            return kot_id

        mark_touched(self.db, "counters")
        return str(value)

    def send_to_kitchen(
        self,
        table_id: str,
        cart: Cart,
        session: TerminalSession,
        customer_name: Optional[str] = None,
        customer_phone: Optional[str] = None,
    ) -> Optional[str]:
        """Dispatch the cart as one KOT batch.

        Returns the KOT id, or None when the cart is empty.
        """
        if cart.is_empty:
            return None
        if not table_id:
            raise ValidationError("A table is required to send a KOT")

        now = utcnow()
        try:
            kot_id = self.next_kot_id(now)
            order = self._open_order_for(table_id, session, now)
            start = len(order.items)
            for offset, line in enumerate(cart.lines):
                order.items.append(OrderItem(
                    position=start + offset,
                    product_id=line.product_id,
                    name=line.name,
                    category=line.category,
                    price=line.unit_price,
                    qty=line.qty,
                    tax_rate=line.tax_rate,
                    is_veg=line.is_veg,
                    variants=dict(line.variants) or None,
                    notes=line.notes,
                    kot_id=kot_id,
                    sent_at=now,
                    status=ItemStatus.KITCHEN,
                ))
            order.recompute_totals(settings.tax_rate)
            if customer_name:
                order.customer_name = customer_name
            if customer_phone:
                order.customer_phone = customer_phone
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"KOT send for table {table_id} failed: {e}")
            raise StoreWriteError("Kitchen send", str(e.__class__.__name__)) from e

        item_count = sum(line.qty for line in cart.lines)
        cart.clear()
        logger.info(f"KOT {kot_id} sent for table {table_id} (order {order.id}, {item_count} items)")
        audit_service.log_action(
            audit_service.KOT_SENT,
            f"KOT #{kot_id} for table {table_id}: {item_count} items, order {order.id}",
            actor=session.actor, db=self.db,
        )
        return kot_id

    def _open_order_for(self, table_id: str, session: TerminalSession, now: datetime) -> Order:
        """The table's OPEN order, created if missing.

        Creation runs in a savepoint: if another terminal opened an order for
        the same table first, the partial unique index rejects ours and the
        batch is appended to theirs.
        """
        order = find_open_order(self.db, table_id)
        if order is not None:
            return order

        order = Order(
            id=new_order_id(),
            table_id=table_id,
            status=OrderStatus.OPEN,
            shift_id=session.shift_id,
            staff_id=session.staff_id,
            staff_name=session.staff_name,
            created_at=now,
        )
        try:
            with self.db.begin_nested():
                self.db.add(order)
                self.db.flush()
        except IntegrityError:
            logger.info(f"Table {table_id} was opened concurrently, appending to the existing order")
            existing = find_open_order(self.db, table_id)
            if existing is None:
                raise
            return existing
        return order
