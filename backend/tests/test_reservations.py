"""Tests for reservations, floor and staff maintenance."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from dinepos.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from dinepos.core.rbac_policy import StaffRole
from dinepos.core.security import verify_pin
from dinepos.models.catalog import DiningTable, Staff
from dinepos.models.order import Order
from dinepos.models.reservation import ReservationStatus
from dinepos.services.kot_service import find_open_order
from dinepos.services.reservation_service import ReservationService
from dinepos.services.table_service import TableService, table_id_for

EVENING = datetime(2026, 3, 1, 19, 30, tzinfo=timezone.utc)


@pytest.fixture
def booking(db_session, cashier_session, tables):
    return ReservationService(db_session).add_reservation(
        "T2", "Anita", "9876500002", EVENING, cashier_session, guests=4, notes="Window seat",
    )


class TestReservations:
    def test_add_reservation(self, booking):
        assert booking.id.startswith("RES-")
        assert booking.status == ReservationStatus.CONFIRMED
        assert booking.guests == 4
        assert booking.created_by == "Chitra Cashier"

    def test_unknown_table(self, db_session, cashier_session, tables):
        with pytest.raises(NotFoundError):
            ReservationService(db_session).add_reservation("T404", "Anita", "98765", EVENING, cashier_session)

    def test_guests_must_be_positive(self, db_session, cashier_session, tables):
        with pytest.raises(ValidationError):
            ReservationService(db_session).add_reservation(
                "T1", "Anita", "98765", EVENING, cashier_session, guests=0,
            )

    def test_listed_by_time_and_status(self, db_session, cashier_session, booking):
        service = ReservationService(db_session)
        early = service.add_reservation("T1", "Dev", "98765", EVENING - timedelta(hours=2), cashier_session)
        service.update_reservation_status(early.id, ReservationStatus.CANCELLED, cashier_session)

        assert [r.id for r in service.list_reservations()] == [early.id, booking.id]
        assert [r.id for r in service.list_reservations(ReservationStatus.CONFIRMED)] == [booking.id]

    @pytest.mark.parametrize("status", [
        ReservationStatus.COMPLETED, ReservationStatus.CANCELLED, ReservationStatus.NO_SHOW,
    ])
    def test_confirmed_moves_anywhere(self, db_session, cashier_session, booking, status):
        updated = ReservationService(db_session).update_reservation_status(booking.id, status, cashier_session)
        assert updated.status == status

    def test_finished_reservation_is_final(self, db_session, cashier_session, booking):
        service = ReservationService(db_session)
        service.update_reservation_status(booking.id, ReservationStatus.NO_SHOW, cashier_session)
        with pytest.raises(InvalidTransitionError):
            service.update_reservation_status(booking.id, ReservationStatus.CONFIRMED, cashier_session)

    def test_unknown_reservation(self, db_session, cashier_session):
        with pytest.raises(NotFoundError):
            ReservationService(db_session).update_reservation_status(
                "RES-missing", ReservationStatus.CANCELLED, cashier_session,
            )


class TestFloor:
    def test_table_id_from_name(self):
        assert table_id_for("Roof Top 3") == "Roof-Top-3"
        assert table_id_for("  T7 ") == "T7"

    def test_add_and_duplicate_table(self, db_session):
        service = TableService(db_session)
        table = service.add_table("Roof Top 3", "Terrace")
        assert table.id == "Roof-Top-3"
        with pytest.raises(ValidationError):
            service.add_table("Roof Top 3")

    def test_status_marks_occupied_tables(self, db_session, shift_session, send_kot):
        send_kot("T1", shift_session, {"A": 1})
        statuses = {s.table_id: s for s in TableService(db_session).table_status()}

        assert statuses["T1"].status == "OCCUPIED"
        assert statuses["T1"].order_total == Decimal("105")
        assert statuses["T2"].status == "AVAILABLE"
        assert statuses["Delivery-1"].is_delivery

    def test_removing_table_keeps_order_history(self, db_session, shift_session, send_kot):
        send_kot("T1", shift_session, {"A": 1})
        order_id = find_open_order(db_session, "T1").id

        TableService(db_session).remove_table("T1", shift_session)

        assert db_session.get(DiningTable, "T1") is None
        assert db_session.get(Order, order_id).table_id == "T1"

    def test_remove_unknown_table(self, db_session, cashier_session):
        with pytest.raises(NotFoundError):
            TableService(db_session).remove_table("T404", cashier_session)

    def test_add_staff_hashes_pin(self, db_session):
        member = TableService(db_session).add_staff("st010", "Nila", "9090", StaffRole.CHEF)
        assert member.id == "ST010"
        assert member.pin_hash != "9090"
        assert verify_pin("9090", member.pin_hash)

    def test_short_pin_rejected(self, db_session):
        with pytest.raises(ValidationError, match="4 digits"):
            TableService(db_session).add_staff("ST011", "Nila", "12", StaffRole.CHEF)


class TestStaffRemoval:
    def test_remove_staff(self, db_session, cashier_session):
        TableService(db_session).remove_staff("st004", cashier_session)
        assert db_session.get(Staff, "ST004") is None

    def test_super_admin_cannot_be_removed(self, db_session, cashier_session):
        with pytest.raises(ValidationError, match="super admin"):
            TableService(db_session).remove_staff("admin123", cashier_session)

    def test_staff_on_shift_cannot_be_removed(self, db_session, shift_session):
        with pytest.raises(ValidationError, match="active shift"):
            TableService(db_session).remove_staff("ST003", shift_session)
        assert db_session.get(Staff, "ST003") is not None

    def test_remove_unknown_staff(self, db_session, cashier_session):
        with pytest.raises(NotFoundError):
            TableService(db_session).remove_staff("ST404", cashier_session)


class TestSuperAdmin:
    def test_seeded_into_empty_staff_list(self, db_session):
        admin = TableService(db_session).ensure_super_admin()

        assert admin.id == "ADMIN123"
        assert admin.role == StaffRole.ADMIN
        assert verify_pin("1234", admin.pin_hash)

    def test_not_seeded_when_staff_exist(self, db_session, staff):
        assert TableService(db_session).ensure_super_admin() is None
        assert db_session.get(Staff, "ADMIN123") is None
