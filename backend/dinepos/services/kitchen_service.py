"""Kitchen state machine and the kitchen board view.

Status is stored per order line but moves per KOT batch:
KITCHEN -> READY -> SERVED, forward only.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from dinepos.core.exceptions import InvalidTransitionError, NotFoundError, StoreWriteError
from dinepos.models.order import ITEM_STATUS_RANK, ItemStatus, Order, OrderItem, OrderStatus
from dinepos.services import audit_service
from dinepos.services.terminal_session import TerminalSession

logger = logging.getLogger(__name__)


def kot_sort_key(kot_id: str):
    # numeric ids compare as numbers so "10" sorts after "9"
    if kot_id.isdigit():
        return (1, int(kot_id), kot_id)
    return (0, 0, kot_id)


@dataclass
class KotBatch:
    kot_id: str
    items: List[OrderItem] = field(default_factory=list)

    @property
    def is_ready(self) -> bool:
        return bool(self.items) and all(i.status == ItemStatus.READY for i in self.items)

    @property
    def is_hidden(self) -> bool:
        return all(i.status == ItemStatus.SERVED for i in self.items)

    @property
    def sent_at(self) -> Optional[datetime]:
        return min((i.sent_at for i in self.items), default=None)


@dataclass
class KitchenTicket:
    order_id: str
    table_id: Optional[str]
    order_status: OrderStatus
    created_at: datetime
    batches: List[KotBatch]


def group_batches(items: List[OrderItem], include_served: bool = False) -> List[KotBatch]:
    """Group lines by KOT id, newest KOT first. Fully served batches are left out."""
    grouped: Dict[str, KotBatch] = {}
    for item in items:
        key = item.kot_id or "UNKNOWN"
        grouped.setdefault(key, KotBatch(kot_id=key)).items.append(item)
    batches = [grouped[k] for k in sorted(grouped, key=kot_sort_key, reverse=True)]
    if include_served:
        return batches
    return [batch for batch in batches if not batch.is_hidden]


class KitchenService:
    def __init__(self, db: Session):
        self.db = db

    def update_kot_status(
        self,
        order_id: str,
        kot_id: str,
        status: ItemStatus,
        session: Optional[TerminalSession] = None,
    ) -> Optional[List[OrderItem]]:
        """Move every line of a KOT batch to ``status``.

        Returns the updated lines, or None when the batch is already there.
        """
        status = ItemStatus(status)
        order = self.db.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        items = order.items_for_kot(kot_id)
        if not items:
            raise NotFoundError("KOT", kot_id)

        if all(item.status == status for item in items):
            return None
        target = ITEM_STATUS_RANK[status]
        for item in items:
            if ITEM_STATUS_RANK[item.status] > target:
                raise InvalidTransitionError(f"KOT #{kot_id}", item.status.value, status.value)

        for item in items:
            item.status = status
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreWriteError("KOT status update", e.__class__.__name__) from e

        actor = session.actor if session else "System"
        audit_service.log_action(
            audit_service.KOT_STATUS, f"KOT #{kot_id} of order {order_id} marked {status.value}",
            actor=actor, db=self.db,
        )
        return items

    def kitchen_board(self) -> List[KitchenTicket]:
        """Orders the kitchen still has to work on, newest first.

        OPEN orders always show; COMPLETED ones only while a line is not yet
        served, since settling the bill does not mean the food went out.
        """
        stmt = (
            select(Order)
            .where(Order.status.in_([OrderStatus.OPEN, OrderStatus.COMPLETED]))
            .options(selectinload(Order.items))
            .order_by(Order.created_at.desc())
        )
        tickets = []
        for order in self.db.execute(stmt).scalars():
            batches = group_batches(order.items)
            if not batches:
                continue
            tickets.append(KitchenTicket(
                order_id=order.id,
                table_id=order.table_id,
                order_status=order.status,
                created_at=order.created_at,
                batches=batches,
            ))
        return tickets
