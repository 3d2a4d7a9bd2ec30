"""
Shared fixtures.

Settings are read at import time, so the environment is prepared before any
sales_engine module is imported.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import datetime
from decimal import Decimal

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

import sales_engine.models  # noqa: F401
from sales_engine.api.deps import get_db
from sales_engine.core.auth import User, get_current_user, get_optional_user
from sales_engine.core.database import Base, create_db_engine
from sales_engine.core.notifications import NotificationDispatcher, get_dispatcher
from sales_engine.models.enums import PropertyStatus, PropertyType
from sales_engine.models.property import Property
from sales_engine.schemas.reservation import ReservationCreate
from sales_engine.schemas.sale import SaleApproval, SaleCreate
from sales_engine.services.letters import AllocationService, OfferService
from sales_engine.services.payment_plans import PaymentPlanService
from sales_engine.services.registry import PropertyRegistry
from sales_engine.services.reservations import ReservationService
from sales_engine.services.sales import SaleService


class RecordingDispatcher(NotificationDispatcher):
    """Keeps published notifications in memory instead of sending them."""

    def __init__(self):
        super().__init__(url=None)
        self.sent = []

    def publish(self, notification):
        self.sent.append(notification)

    @property
    def subjects(self):
        return [n.subject for n in self.sent]


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def dispatcher():
    recording = RecordingDispatcher()
    yield recording
    recording.shutdown()


# =============================================================================
# Actors
# =============================================================================


@pytest.fixture
def admin():
    return User(user_id="admin-1", email="admin@example.com", role="ADMIN", name="Ada Admin")


@pytest.fixture
def manager():
    return User(user_id="manager-1", email="manager@example.com", role="MANAGER", name="Musa Manager")


@pytest.fixture
def customercare():
    return User(user_id="care-1", email="care@example.com", role="CUSTOMERCARE", name="Chi Care")


@pytest.fixture
def accountant():
    return User(user_id="acct-1", email="accounts@example.com", role="ACCOUNTANT", name="Ayo Accounts")


@pytest.fixture
def agent():
    return User(user_id="agent-1", email="agent@example.com", role="AGENT", name="Ade Agent")


@pytest.fixture
def client_user():
    return User(user_id="client-1", email="buyer@example.com", role="CLIENT", name="Bola Buyer")


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def registry(db, dispatcher):
    return PropertyRegistry(db, dispatcher)


@pytest.fixture
def reservations(db, dispatcher):
    return ReservationService(db, dispatcher)


@pytest.fixture
def sales(db, dispatcher):
    return SaleService(db, dispatcher)


@pytest.fixture
def offers(db, dispatcher):
    return OfferService(db, dispatcher)


@pytest.fixture
def allocations(db, dispatcher):
    return AllocationService(db, dispatcher)


@pytest.fixture
def plans(db, dispatcher):
    return PaymentPlanService(db, dispatcher)


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_property(db):
    def _make(
        property_type=PropertyType.HOUSE,
        unit_number="12",
        block_number="B",
        price=Decimal("5000000"),
        estate_name="Palm Estate",
        status=PropertyStatus.AVAILABLE,
    ):
        prop = Property(
            property_type=property_type,
            unit_number=unit_number,
            block_number=block_number,
            price=price,
            estate_name=estate_name,
            status=status,
            version=1,
        )
        db.add(prop)
        db.commit()
        return prop

    return _make


@pytest.fixture
def reservation_payload():
    def _payload(prop, **overrides):
        data = dict(
            property_id=prop.id,
            property_type=prop.property_type,
            title="Mrs",
            name="Bola Buyer",
            email_address="buyer@example.com",
            phone_number="+2348000000001",
            client_id="client-1",
        )
        data.update(overrides)
        return ReservationCreate(**data)

    return _payload


@pytest.fixture
def sale_payload():
    def _payload(prop, **overrides):
        data = dict(
            property_id=prop.id,
            property_type=prop.property_type,
            name="Bola Buyer",
            email_address="buyer@example.com",
            phone_number="+2348000000001",
            client_id="client-1",
        )
        data.update(overrides)
        return SaleCreate(**data)

    return _payload


@pytest.fixture
def approved_sale(make_property, sale_payload, sales, admin):
    """An approved, unpaid sale on a 5,000,000 house with a 200,000 facility fee."""
    prop = make_property()
    sale = sales.create(sale_payload(prop, facility_fee=Decimal("200000")), admin)
    return sales.approve(sale.id, SaleApproval(), admin)


@pytest.fixture
def plan_start():
    return datetime(2026, 1, 31, 9, 0)


# =============================================================================
# API
# =============================================================================


@pytest.fixture
def api(db, dispatcher):
    """
    TestClient bound to the test session. ``api.actor`` is the caller: set it
    to a User, or leave it None for an anonymous request.
    """
    from sales_engine.main import app

    class Api:
        actor = None

    state = Api()

    def current_user():
        if state.actor is None:
            raise HTTPException(status_code=401, detail="Not authenticated")
        return state.actor

    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_current_user] = current_user
    app.dependency_overrides[get_optional_user] = lambda: state.actor

    with TestClient(app) as test_client:
        state.client = test_client
        yield state
    app.dependency_overrides.clear()
