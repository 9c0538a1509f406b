"""Tests for sending KOTs: order creation, appends and the daily counter."""

import re
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from dinepos.core.exceptions import StoreWriteError
from dinepos.models.operations import AuditLogEntry, KotCounter
from dinepos.models.order import ItemStatus, Order, OrderStatus
from dinepos.services.cart_service import Cart
from dinepos.services.kot_service import KotSequencer, find_open_order, local_date_key, new_order_id


def open_orders(db, table_id):
    return list(db.execute(
        select(Order).where(Order.table_id == table_id, Order.status == OrderStatus.OPEN)
    ).scalars())


class TestSendToKitchen:
    def test_first_kot_creates_order(self, db_session, shift_session, send_kot):
        kot_id = send_kot("T1", shift_session, {"A": 2, "B": 1})

        order = find_open_order(db_session, "T1")
        assert kot_id == "1"
        assert order.subtotal == Decimal("250")
        assert order.tax == Decimal("13")
        assert order.total == Decimal("263")
        assert order.status == OrderStatus.OPEN
        assert order.shift_id == shift_session.shift_id
        assert order.staff_id == "ST003"
        assert all(item.kot_id == "1" and item.status == ItemStatus.KITCHEN for item in order.items)

    def test_order_id_format(self):
        assert re.fullmatch(r"ORD-\d{13}-[0-9a-f]{4}", new_order_id())

    def test_second_kot_appends_to_same_order(self, db_session, shift_session, send_kot):
        send_kot("T1", shift_session, {"A": 2, "B": 1})
        kot_id = send_kot("T1", shift_session, {"A": 1})

        orders = open_orders(db_session, "T1")
        assert kot_id == "2"
        assert len(orders) == 1
        order = orders[0]
        assert order.subtotal == Decimal("350")
        assert order.tax == Decimal("18")
        assert order.total == Decimal("368")
        assert [item.kot_id for item in order.items] == ["1", "1", "2"]

    def test_totals_invariant_after_each_send(self, db_session, shift_session, send_kot):
        for lines in ({"A": 1}, {"B": 3}, {"C": 1}):
            send_kot("T2", shift_session, lines)
            order = find_open_order(db_session, "T2")
            assert order.total == order.subtotal + order.tax - order.discount
            assert order.tax == (order.subtotal * Decimal("0.05")).quantize(Decimal("1"), rounding="ROUND_HALF_UP")

    def test_discount_preserved_on_append(self, db_session, shift_session, send_kot):
        send_kot("T1", shift_session, {"A": 2})
        order = find_open_order(db_session, "T1")
        order.discount = Decimal("10")
        order.recompute_totals(Decimal("0.05"))
        db_session.commit()

        send_kot("T1", shift_session, {"B": 1})

        assert order.discount == Decimal("10")
        assert order.total == Decimal("250") + Decimal("13") - Decimal("10")

    def test_customer_details_not_blanked(self, db_session, shift_session, send_kot):
        send_kot("T1", shift_session, {"A": 1}, customer_name="Ravi", customer_phone="9876500001")
        send_kot("T1", shift_session, {"B": 1})

        order = find_open_order(db_session, "T1")
        assert order.customer_name == "Ravi"
        assert order.customer_phone == "9876500001"

        send_kot("T1", shift_session, {"B": 1}, customer_name="Ravi K")
        assert order.customer_name == "Ravi K"

    def test_empty_cart_is_noop(self, db_session, shift_session, tables):
        assert KotSequencer(db_session).send_to_kitchen("T1", Cart(), shift_session) is None
        assert find_open_order(db_session, "T1") is None

    def test_cart_cleared_after_send(self, db_session, shift_session, products, tables):
        cart = Cart()
        cart.add_line(products["A"])
        KotSequencer(db_session).send_to_kitchen("T1", cart, shift_session)
        assert cart.is_empty

    def test_tables_have_separate_orders(self, db_session, shift_session, send_kot):
        send_kot("T1", shift_session, {"A": 1})
        send_kot("T2", shift_session, {"B": 1})

        assert find_open_order(db_session, "T1").id != find_open_order(db_session, "T2").id

    def test_audit_entry_written(self, db_session, shift_session, send_kot):
        send_kot("T1", shift_session, {"A": 1})
        entry = db_session.execute(
            select(AuditLogEntry).where(AuditLogEntry.action == "KOT_SENT")
        ).scalar_one()
        assert entry.user_name == "Chitra Cashier"
        assert "T1" in entry.details

    def test_store_failure_raises_and_keeps_cart(self, db_session, shift_session, products, tables):
        cart = Cart()
        cart.add_line(products["A"])
        sequencer = KotSequencer(db_session)

        with patch.object(db_session, "commit", side_effect=OperationalError("commit", {}, Exception("disk I/O"))):
            with pytest.raises(StoreWriteError, match="did NOT complete"):
                sequencer.send_to_kitchen("T1", cart, shift_session)

        assert not cart.is_empty
        assert find_open_order(db_session, "T1") is None


class TestKotCounter:
    def test_counter_increments_per_day(self, db_session):
        sequencer = KotSequencer(db_session)
        day = datetime(2026, 3, 1, 6, 0, tzinfo=timezone.utc)

        assert [sequencer.next_kot_id(day) for _ in range(3)] == ["1", "2", "3"]
        db_session.commit()

        counter = db_session.get(KotCounter, local_date_key(day))
        assert counter.value == 3

    def test_new_day_starts_at_one(self, db_session):
        sequencer = KotSequencer(db_session)
        sequencer.next_kot_id(datetime(2026, 3, 1, 6, 0, tzinfo=timezone.utc))
        assert sequencer.next_kot_id(datetime(2026, 3, 2, 6, 0, tzinfo=timezone.utc)) == "1"

    def test_date_key_uses_restaurant_timezone(self):
        # 20:00 UTC is already the next day in Asia/Kolkata (UTC+5:30)
        assert local_date_key(datetime(2026, 3, 1, 20, 0, tzinfo=timezone.utc)) == "2026-03-02"

    def test_counter_failure_falls_back(self, db_session):
        sequencer = KotSequencer(db_session)
        with patch.object(db_session, "execute", side_effect=OperationalError("update", {}, Exception("locked"))):
            kot_id = sequencer.next_kot_id()

        assert kot_id.startswith("KOT-")
        assert len(kot_id) == len("KOT-") + 4

    def test_counter_failure_does_not_block_send(self, db_session, shift_session, products, tables):
        cart = Cart()
        cart.add_line(products["A"])
        sequencer = KotSequencer(db_session)

        with patch.object(sequencer, "next_kot_id", return_value="KOT-4321"):
            kot_id = sequencer.send_to_kitchen("T1", cart, shift_session)

        assert kot_id == "KOT-4321"
        assert find_open_order(db_session, "T1").items[0].kot_id == "KOT-4321"
