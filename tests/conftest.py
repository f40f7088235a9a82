"""
Pytest configuration and fixtures for testing.
Uses in-memory SQLite database for fast, isolated tests.
"""
import copy
import os
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

# Set testing environment before importing the app
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "True"
os.environ["RECEIPT_SWEEP_IN_PROCESS"] = "False"

import campus_orders.data.models  # noqa: F401,E402
from campus_orders.api.deps import get_catalog, get_clock, get_notifications  # noqa: E402
from campus_orders.catalog_service.main import CONCESSIONS, ITEMS  # noqa: E402
from campus_orders.data.database import Base, build_engine, get_db  # noqa: E402
from campus_orders.domain.errors import NotFound  # noqa: E402
from campus_orders.main import create_app  # noqa: E402
from campus_orders.services.notification_service import NotificationService  # noqa: E402

T0 = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Mutable clock handed to services instead of utcnow."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeCatalog:
    """In-memory catalog built from the dev mock data."""

    def __init__(self):
        self.items = copy.deepcopy(ITEMS)
        self.concessions = copy.deepcopy(CONCESSIONS)

    def fetch_item(self, item_id: int) -> dict:
        if item_id not in self.items:
            raise NotFound(f"Menu item {item_id} not found")
        return self.items[item_id]

    def fetch_concession(self, concession_id: int) -> dict:
        if concession_id not in self.concessions:
            raise NotFound(f"Concession {concession_id} not found")
        return self.concessions[concession_id]


@pytest.fixture()
def engine():
    engine = build_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db(session_factory):
    """Create a fresh database session for each test."""
    db_session = session_factory()
    yield db_session
    db_session.close()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def sent():
    """Every notification payload dispatched during the test."""
    return []


@pytest.fixture()
def notifications(sent):
    return NotificationService(dispatch=sent.append)


@pytest.fixture()
def catalog():
    return FakeCatalog()


@pytest.fixture()
def client(session_factory, notifications, catalog, clock):
    app = create_app(use_lifespan=False)

    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_notifications] = lambda: notifications
    app.dependency_overrides[get_catalog] = lambda: catalog
    app.dependency_overrides[get_clock] = lambda: clock

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


def events_of(sent, event_type: str, user_id: int | None = None):
    return [
        p for p in sent
        if p["event"]["type"] == event_type and (user_id is None or p["user_id"] == user_id)
    ]


CUSTOMER = 7
OTHER_CUSTOMER = 8
CONCESSIONAIRE = 101  # owns concession 1
OTHER_CONCESSIONAIRE = 102  # owns concession 2


@pytest.fixture()
def cart_service(db, catalog, clock):
    from campus_orders.services.cart_service import CartService

    return CartService(db, catalog, clock)


@pytest.fixture()
def order_service(db, notifications, clock):
    from campus_orders.services.order_service import OrderService

    return OrderService(db, notifications, clock)


@pytest.fixture()
def expiry_service(db, notifications, clock):
    from campus_orders.services.receipt_expiry_service import ReceiptExpiryService

    return ReceiptExpiryService(db, notifications, clock)


@pytest.fixture()
def reopening_service(db, notifications, clock):
    from campus_orders.services.reopening_service import ReopeningService

    return ReopeningService(db, notifications, clock)


@pytest.fixture()
def place_order(cart_service, order_service, sent):
    """Put one Pancit Canton in the cart and check it out; returns the order dict."""

    def _place(payment_method: str = "gcash", customer_id: int = CUSTOMER, quantity: int = 1):
        cart = cart_service.add_item(customer_id, 1, 2, quantity)
        order_id = cart["concessions"][0]["order"]["id"]
        order = order_service.checkout_single_order(order_id, customer_id, payment_method)
        sent.clear()
        return order

    return _place
