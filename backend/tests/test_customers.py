"""Tests for customer profile editing."""

import pytest
from sqlalchemy import select

from dinepos.core.exceptions import NotFoundError, ValidationError
from dinepos.models.customer import Customer
from dinepos.models.operations import AuditLogEntry
from dinepos.services.customer_service import CustomerService


@pytest.fixture
def regulars(db_session):
    rows = [
        Customer(phone="9876500001", name="Ravi", loyalty_points=40, notes="VIP"),
        Customer(phone="9123400002", name="Anita"),
    ]
    db_session.add_all(rows)
    db_session.commit()
    return rows


class TestUpdateCustomer:
    def test_profile_fields_change(self, db_session, cashier_session, regulars):
        customer = CustomerService(db_session).update_customer(
            "9876500001", cashier_session,
            name="Ravi Kumar", email="ravi@example.com", notes="VIP, nut allergy",
        )

        assert customer.name == "Ravi Kumar"
        assert customer.email == "ravi@example.com"
        assert customer.notes == "VIP, nut allergy"
        assert customer.loyalty_points == 40
        entry = db_session.execute(
            select(AuditLogEntry).where(AuditLogEntry.action == "CUSTOMER_UPDATE")
        ).scalar_one()
        assert "name, email, notes" in entry.details

    def test_blank_note_clears_it(self, db_session, cashier_session, regulars):
        customer = CustomerService(db_session).update_customer("9876500001", cashier_session, notes="  ")
        assert customer.notes is None

    def test_blank_name_rejected(self, db_session, cashier_session, regulars):
        with pytest.raises(ValidationError):
            CustomerService(db_session).update_customer("9876500001", cashier_session, name="")

    def test_points_cannot_be_edited(self, db_session, cashier_session, regulars):
        with pytest.raises(ValidationError):
            CustomerService(db_session).update_customer("9876500001", cashier_session, loyalty_points=500)
        assert db_session.get(Customer, "9876500001").loyalty_points == 40

    def test_unchanged_profile_writes_no_audit(self, db_session, cashier_session, regulars):
        CustomerService(db_session).update_customer("9876500001", cashier_session, name="Ravi")
        actions = db_session.execute(select(AuditLogEntry.action)).scalars().all()
        assert "CUSTOMER_UPDATE" not in actions

    def test_unknown_customer(self, db_session, cashier_session, regulars):
        with pytest.raises(NotFoundError):
            CustomerService(db_session).update_customer("0000", cashier_session, name="Nobody")


class TestSearch:
    def test_by_name_or_phone(self, db_session, regulars):
        service = CustomerService(db_session)
        assert [c.phone for c in service.search("ravi")] == ["9876500001"]
        assert [c.phone for c in service.search("91234")] == ["9123400002"]
        assert [c.name for c in service.search()] == ["Anita", "Ravi"]
