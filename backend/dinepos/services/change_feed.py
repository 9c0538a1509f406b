"""Collection change feed.

Terminals subscribe to a collection ("orders", "tables", ...) and receive the
whole collection as a snapshot every time a committed transaction touched it.
Snapshots are loaded after commit with a fresh session, so a subscriber never
sees uncommitted state. Per collection the newest snapshot wins.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

from sqlalchemy import event, inspect, select
from sqlalchemy.orm import Session, selectinload, sessionmaker

from dinepos.models import (
    AuditLogEntry,
    Customer,
    DiningTable,
    Expense,
    KotCounter,
    LoyaltySettings,
    Order,
    Product,
    Reservation,
    Shift,
    Staff,
)

logger = logging.getLogger(__name__)

Snapshot = List[Dict[str, Any]]
Callback = Callable[[str, Snapshot], None]

COLLECTIONS = {
    "products": Product,
    "tables": DiningTable,
    "orders": Order,
    "customers": Customer,
    "shifts": Shift,
    "reservations": Reservation,
    "settings": LoyaltySettings,
    "counters": KotCounter,
    "auditLogs": AuditLogEntry,
    "staff": Staff,
    "expenses": Expense,
}

TABLE_COLLECTIONS = {
    "products": "products",
    "tables": "tables",
    "orders": "orders",
    "order_items": "orders",
    "order_payments": "orders",
    "customers": "customers",
    "loyalty_transactions": "customers",
    "shifts": "shifts",
    "reservations": "reservations",
    "loyalty_settings": "settings",
    "kot_counters": "counters",
    "audit_log_entries": "auditLogs",
    "staff": "staff",
    "expenses": "expenses",
}

# never published
PRIVATE_COLUMNS = {"pin_hash"}

_TOUCHED_KEY = "dinepos_touched_collections"


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def to_document(obj: Any) -> Dict[str, Any]:
    mapper = inspect(obj).mapper
    doc = {
        attr.key: _plain(getattr(obj, attr.key))
        for attr in mapper.column_attrs
        if attr.key not in PRIVATE_COLUMNS
    }
    if isinstance(obj, Order):
        doc["items"] = [to_document(item) for item in obj.items]
        doc["payments"] = [to_document(p) for p in obj.payments]
    elif isinstance(obj, Customer):
        doc["loyalty_history"] = [to_document(tx) for tx in obj.loyalty_history]
    return doc


def load_snapshot(db: Session, collection: str) -> Snapshot:
    """Read one whole collection as plain documents."""
    model = COLLECTIONS.get(collection)
    if model is None:
        raise KeyError(f"Unknown collection '{collection}'")
    stmt = select(model)
    if model is Order:
        stmt = stmt.options(selectinload(Order.items), selectinload(Order.payments))
    elif model is Customer:
        stmt = stmt.options(selectinload(Customer.loyalty_history))
    return [to_document(obj) for obj in db.execute(stmt).scalars()]


def mark_touched(db: Session, collection: str) -> None:
    """Flag a collection as changed by statements the flush hook cannot see."""
    db.info.setdefault(_TOUCHED_KEY, set()).add(collection)


class ChangeFeed:
    """Observer registry wired to SQLAlchemy session events."""

    def __init__(self):
        self._subscribers: Dict[str, List[Callback]] = defaultdict(list)
        self._lock = threading.Lock()
        self._session_factory: Optional[sessionmaker] = None

    def subscribe(self, collection: str, callback: Callback) -> Callable[[], None]:
        """Register ``callback(collection, snapshot)``; returns an unsubscribe function."""
        if collection not in COLLECTIONS:
            raise KeyError(f"Unknown collection '{collection}'")
        with self._lock:
            self._subscribers[collection].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers[collection]:
                    self._subscribers[collection].remove(callback)

        return unsubscribe

    def has_subscribers(self, collection: str) -> bool:
        return bool(self._subscribers.get(collection))

    def publish(self, collection: str, snapshot: Snapshot) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(collection, ()))
        for callback in callbacks:
            try:
                callback(collection, snapshot)
            except Exception:
                # a broken terminal must not stop the others from updating
                logger.exception("Change feed subscriber failed for %s", collection)

    def load(self, collection: str) -> Snapshot:
        """Fetch the authoritative snapshot of a collection."""
        if self._session_factory is None:
            raise RuntimeError("ChangeFeed is not attached to a session factory")
        db = self._session_factory()
        try:
            return load_snapshot(db, collection)
        finally:
            db.close()

    def attach(self, session_factory: sessionmaker) -> None:
        """Listen to flush/commit events of every session the factory creates."""
        if self._session_factory is session_factory:
            return
        self._session_factory = session_factory
        event.listen(session_factory, "after_flush", self._after_flush)
        event.listen(session_factory, "after_commit", self._after_commit)
        event.listen(session_factory, "after_transaction_end", self._after_transaction_end)

    def detach(self) -> None:
        if self._session_factory is None:
            return
        event.remove(self._session_factory, "after_flush", self._after_flush)
        event.remove(self._session_factory, "after_commit", self._after_commit)
        event.remove(self._session_factory, "after_transaction_end", self._after_transaction_end)
        self._session_factory = None

    # ------------------------------------------------------------------
    # session events
    # ------------------------------------------------------------------

    def _after_flush(self, session: Session, flush_context) -> None:
        touched: Set[str] = session.info.setdefault(_TOUCHED_KEY, set())
        for obj in list(session.new) + list(session.dirty) + list(session.deleted):
            table = getattr(obj, "__tablename__", None)
            collection = TABLE_COLLECTIONS.get(table)
            if collection:
                touched.add(collection)

    def _after_commit(self, session: Session) -> None:
        # a released savepoint is not a commit; wait for the outer transaction
        if session.in_nested_transaction():
            return
        touched: Set[str] = session.info.pop(_TOUCHED_KEY, set())
        for collection in sorted(touched):
            if not self.has_subscribers(collection):
                continue
            self.publish(collection, self.load(collection))

    def _after_transaction_end(self, session: Session, transaction) -> None:
        # a rolled back outer transaction publishes nothing
        if transaction.parent is None and not transaction.nested:
            session.info.pop(_TOUCHED_KEY, None)


change_feed = ChangeFeed()
