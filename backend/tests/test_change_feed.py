"""Tests for the change feed and the terminal cache built on it."""

from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from dinepos.core.exceptions import NotFoundError, StoreWriteError
from dinepos.core.rbac_policy import StaffRole
from dinepos.models.catalog import DiningTable, Product
from dinepos.services.cart_service import Cart
from dinepos.services.change_feed import ChangeFeed, load_snapshot, mark_touched
from dinepos.services.kot_service import KotSequencer
from dinepos.services.table_service import TableService
from dinepos.services.terminal_cache import TerminalCache
from dinepos.services.terminal_session import TerminalSession, TerminalSessionService

MANAGER = TerminalSession(staff_id="ST002", staff_name="Manoj Manager", role=StaffRole.MANAGER)


@pytest.fixture
def feed(session_factory):
    feed = ChangeFeed()
    feed.attach(session_factory)
    yield feed
    feed.detach()


@pytest.fixture
def received():
    """Collects (collection, snapshot) pairs delivered to a subscriber."""
    events = []

    def _callback(collection, snapshot):
        events.append((collection, snapshot))

    _callback.events = events
    return _callback


class TestChangeFeed:
    def test_commit_publishes_snapshot(self, feed, session_factory, received):
        feed.subscribe("tables", received)
        db = session_factory()
        db.add(DiningTable(id="T9", name="T9", floor="Terrace"))
        db.commit()
        db.close()

        assert len(received.events) == 1
        collection, snapshot = received.events[0]
        assert collection == "tables"
        assert [doc["id"] for doc in snapshot] == ["T9"]

    def test_rollback_publishes_nothing(self, feed, session_factory, received):
        feed.subscribe("tables", received)
        db = session_factory()
        db.add(DiningTable(id="T9", name="T9", floor="Terrace"))
        db.flush()
        db.rollback()

        db.add(DiningTable(id="T8", name="T8", floor="Terrace"))
        db.commit()
        db.close()

        # only the second transaction is seen, and T9 never existed
        assert len(received.events) == 1
        assert [doc["id"] for doc in received.events[0][1]] == ["T8"]

    def test_only_touched_collections_publish(self, feed, session_factory, received):
        feed.subscribe("orders", received)
        db = session_factory()
        db.add(DiningTable(id="T9", name="T9", floor="Terrace"))
        db.commit()
        db.close()
        assert received.events == []

    def test_order_documents_embed_items(self, feed, session_factory, received, staff, products, tables):
        feed.subscribe("orders", received)
        db = session_factory()
        cart = Cart()
        cart.add_line(db.get(Product, "P-A"), quantity=2)
        session = TerminalSessionService(db).resume("ST003")
        KotSequencer(db).send_to_kitchen("T1", cart, session)
        db.close()

        snapshot = received.events[-1][1]
        assert len(snapshot) == 1
        order = snapshot[0]
        assert order["status"] == "OPEN"
        assert Decimal(order["total"]) == Decimal("210")
        assert [item["product_id"] for item in order["items"]] == ["P-A"]
        assert order["payments"] == []

    def test_pin_hash_never_published(self, feed, staff):
        snapshot = feed.load("staff")
        assert {doc["id"] for doc in snapshot} == {"ST001", "ST002", "ST003", "ST004"}
        assert all("pin_hash" not in doc for doc in snapshot)

    def test_bulk_update_needs_mark_touched(self, feed, session_factory, received, products):
        feed.subscribe("products", received)
        db = session_factory()
        db.execute(update(Product).where(Product.id == "P-A").values(stock=0))
        mark_touched(db, "products")
        db.commit()
        db.close()

        snapshot = received.events[-1][1]
        assert next(doc for doc in snapshot if doc["id"] == "P-A")["stock"] == 0

    def test_failing_subscriber_does_not_block_others(self, feed, session_factory, received):
        def broken(collection, snapshot):
            raise RuntimeError("terminal went away")

        feed.subscribe("tables", broken)
        feed.subscribe("tables", received)
        db = session_factory()
        db.add(DiningTable(id="T9", name="T9", floor="Terrace"))
        db.commit()
        db.close()

        assert len(received.events) == 1

    def test_unsubscribe(self, feed, session_factory, received):
        unsubscribe = feed.subscribe("tables", received)
        unsubscribe()
        assert not feed.has_subscribers("tables")

        db = session_factory()
        db.add(DiningTable(id="T9", name="T9", floor="Terrace"))
        db.commit()
        db.close()
        assert received.events == []

    def test_unknown_collection(self, feed, db_session, received):
        with pytest.raises(KeyError):
            feed.subscribe("menus", received)
        with pytest.raises(KeyError):
            load_snapshot(db_session, "menus")


class TestTerminalCache:
    @pytest.fixture
    def cache(self, feed, tables):
        cache = TerminalCache(feed, ("tables",))
        cache.refresh("tables")
        yield cache
        cache.close()

    def test_refresh_loads_store_state(self, cache):
        assert {doc["id"] for doc in cache.view("tables")} == {"T1", "T2", "Delivery-1"}

    def test_snapshot_replaces_confirmed_state(self, cache, session_factory):
        db = session_factory()
        db.add(DiningTable(id="T3", name="T3", floor="Ground Floor"))
        db.commit()
        db.close()

        assert "T3" in {doc["id"] for doc in cache.confirmed("tables")}

    def test_removal_is_visible_before_the_write_lands(self, cache, session_factory):
        seen_during_write = []
        db = session_factory()

        def write():
            seen_during_write.extend(doc["id"] for doc in cache.view("tables"))
            TableService(db).remove_table("T1", MANAGER)

        cache.remove_table("T1", write)
        db.close()

        assert "T1" not in seen_during_write
        assert "T1" not in {doc["id"] for doc in cache.view("tables")}
        assert "T1" not in {doc["id"] for doc in cache.confirmed("tables")}
        assert cache.pending("tables") == set()

    def test_failed_write_restores_store_state(self, cache, session_factory):
        db = session_factory()

        def write():
            with patch.object(db, "commit", side_effect=OperationalError("delete", {}, Exception("offline"))):
                TableService(db).remove_table("T1", MANAGER)

        with pytest.raises(StoreWriteError):
            cache.remove_table("T1", write)
        db.close()

        assert "T1" in {doc["id"] for doc in cache.view("tables")}
        assert cache.pending("tables") == set()

    def test_removing_missing_table_restores_view(self, cache, session_factory):
        def write():
            with session_factory() as db:
                TableService(db).remove_table("T404", MANAGER)

        with pytest.raises(NotFoundError):
            cache.remove_table("T404", write)

        assert cache.pending("tables") == set()
        assert len(cache.view("tables")) == 3
