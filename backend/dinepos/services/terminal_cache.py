"""Terminal-side view of the shared collections.

Client-side component: a terminal process creates one on top of a
``ChangeFeed`` attached to its own session factory. The API server does not
use it.

The cache keeps the last confirmed snapshot of each subscribed collection,
as published by the change feed, and a pending overlay of optimistic
removals. Reads see confirmed state minus pending removals, so the operator
sees their own action at once. When the store write behind a pending change
fails, the overlay is dropped and the authoritative snapshot re-fetched.
"""

import logging
import threading
from typing import Callable, Dict, Iterable, List, Set

from dinepos.core.exceptions import PosError
from dinepos.services.change_feed import ChangeFeed, Snapshot

logger = logging.getLogger(__name__)


class TerminalCache:
    def __init__(self, feed: ChangeFeed, collections: Iterable[str] = ("tables", "orders")):
        self.feed = feed
        self._lock = threading.Lock()
        self._confirmed: Dict[str, Snapshot] = {}
        self._pending_removals: Dict[str, Set[str]] = {}
        self._unsubscribe: List[Callable[[], None]] = []
        for collection in collections:
            self._confirmed[collection] = []
            self._pending_removals[collection] = set()
            self._unsubscribe.append(feed.subscribe(collection, self._on_snapshot))

    def close(self) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []

    def _on_snapshot(self, collection: str, snapshot: Snapshot) -> None:
        with self._lock:
            self._confirmed[collection] = snapshot
            present = {doc.get("id") for doc in snapshot}
            # a removal the store has confirmed is no longer pending
            self._pending_removals[collection] &= present

    def refresh(self, collection: str) -> Snapshot:
        """Replace local state with the store's copy and drop pending changes."""
        snapshot = self.feed.load(collection)
        with self._lock:
            self._confirmed[collection] = snapshot
            self._pending_removals[collection] = set()
        return snapshot

    def confirmed(self, collection: str) -> Snapshot:
        with self._lock:
            return list(self._confirmed.get(collection, []))

    def pending(self, collection: str) -> Set[str]:
        with self._lock:
            return set(self._pending_removals.get(collection, set()))

    def view(self, collection: str) -> Snapshot:
        with self._lock:
            hidden = self._pending_removals.get(collection, set())
            return [doc for doc in self._confirmed.get(collection, []) if doc.get("id") not in hidden]

    def remove(self, collection: str, key: str, write: Callable[[], None]) -> None:
        """Hide ``key`` locally, then run the store write.

        If the write fails the local state is rolled back to the store's
        snapshot and the error re-raised for the operator to retry.
        """
        with self._lock:
            self._pending_removals.setdefault(collection, set()).add(key)
        try:
            write()
        except PosError:
            logger.warning(f"Removing {key} from {collection} failed, re-fetching")
            self.refresh(collection)
            raise
        with self._lock:
            self._pending_removals[collection].discard(key)
            self._confirmed[collection] = [
                doc for doc in self._confirmed.get(collection, []) if doc.get("id") != key
            ]

    def remove_table(self, table_id: str, write: Callable[[], None]) -> None:
        self.remove("tables", table_id, write)
