"""Pytest configuration and fixtures."""

import os

# The app module builds its engine at import time; keep it off the disk.
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from decimal import Decimal
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from dinepos.core.rbac_policy import StaffRole
from dinepos.core.security import create_access_token, get_pin_hash
from dinepos.db.base import Base
from dinepos.db.session import enable_sqlite_savepoints, get_db
from dinepos.main import app
# Import all models to ensure they're registered with Base.metadata
from dinepos.models import *  # noqa: F401,F403
from dinepos.models.catalog import DiningTable, Product, Staff
from dinepos.services.cart_service import Cart
from dinepos.services.kot_service import KotSequencer
from dinepos.services.shift_service import ShiftService
from dinepos.services.terminal_session import TerminalSessionService

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"

PIZZA_VARIANTS = [
    {
        "id": "size",
        "name": "Size",
        "options": [
            {"id": "regular", "name": "Regular", "price_modifier": "0"},
            {"id": "large", "name": "Large", "price_modifier": "80"},
        ],
    },
    {
        "id": "crust",
        "name": "Crust",
        "options": [
            {"id": "thin", "name": "Thin", "price_modifier": "0"},
            {"id": "cheese", "name": "Cheese Burst", "price_modifier": "40"},
        ],
    },
]


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def session_factory(db_engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    """Create a test database session."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    # Disable rate limiting during tests to avoid flaky failures
    from dinepos.core.rate_limit import limiter as global_limiter
    global_limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    global_limiter.enabled = True
    app.dependency_overrides.clear()


# ==================== Seed data ====================

@pytest.fixture
def staff(db_session: Session) -> dict:
    """One staff member per role. PINs are the role's digit repeated."""
    members = {
        StaffRole.ADMIN: Staff(id="ST001", name="Asha Admin", pin_hash=get_pin_hash("1111"), role=StaffRole.ADMIN),
        StaffRole.MANAGER: Staff(id="ST002", name="Manoj Manager", pin_hash=get_pin_hash("2222"), role=StaffRole.MANAGER),
        StaffRole.CASHIER: Staff(id="ST003", name="Chitra Cashier", pin_hash=get_pin_hash("3333"), role=StaffRole.CASHIER),
        StaffRole.CHEF: Staff(id="ST004", name="Kiran Chef", pin_hash=get_pin_hash("4444"), role=StaffRole.CHEF),
    }
    db_session.add_all(members.values())
    db_session.commit()
    return members


@pytest.fixture
def tables(db_session: Session) -> dict:
    rows = {
        "T1": DiningTable(id="T1", name="T1", floor="Ground Floor"),
        "T2": DiningTable(id="T2", name="T2", floor="Ground Floor"),
        "Delivery-1": DiningTable(id="Delivery-1", name="Delivery 1", floor="Online"),
    }
    db_session.add_all(rows.values())
    db_session.commit()
    return rows


@pytest.fixture
def products(db_session: Session) -> dict:
    rows = {
        "A": Product(id="P-A", name="Paneer Tikka", price=Decimal("100"), category="Starters", stock=50, is_veg=True),
        "B": Product(id="P-B", name="Masala Chai", price=Decimal("50"), category="Drinks", stock=50, is_veg=True),
        "C": Product(id="P-C", name="Family Thali", price=Decimal("1000"), category="Mains", stock=10),
        "PIZZA": Product(
            id="P-PZ", name="Margherita", price=Decimal("200"), category="Pizza",
            stock=20, is_veg=True, variants=PIZZA_VARIANTS,
        ),
        "OOS": Product(id="P-OOS", name="Seasonal Special", price=Decimal("300"), category="Mains", stock=0),
    }
    db_session.add_all(rows.values())
    db_session.commit()
    return rows


@pytest.fixture
def cashier_session(db_session: Session, staff):
    """Logged-in cashier without a shift."""
    return TerminalSessionService(db_session).resume("ST003")


@pytest.fixture
def shift_session(db_session: Session, cashier_session):
    """Logged-in cashier with an ACTIVE shift opened with 1000 in the drawer."""
    ShiftService(db_session).start_shift(cashier_session, Decimal("1000"))
    return TerminalSessionService(db_session).resume(cashier_session.staff_id)


@pytest.fixture
def send_kot(db_session: Session, products, tables):
    """Send ``{product_key: qty}`` to a table's kitchen; returns the KOT id."""
    def _send(table_id: str, session, lines: dict, **customer):
        cart = Cart()
        for key, qty in lines.items():
            cart.add_line(products[key], quantity=qty)
        return KotSequencer(db_session).send_to_kitchen(table_id, cart, session, **customer)

    return _send


def token_headers(staff_id: str, role: StaffRole) -> dict:
    token = create_access_token(data={"sub": staff_id, "role": role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def cashier_headers(staff) -> dict:
    return token_headers("ST003", StaffRole.CASHIER)


@pytest.fixture
def admin_headers(staff) -> dict:
    return token_headers("ST001", StaffRole.ADMIN)


@pytest.fixture
def chef_headers(staff) -> dict:
    return token_headers("ST004", StaffRole.CHEF)
