"""
Pytest fixtures for test database, client, payment gateway and authentication.

Each test gets a fresh in-memory SQLite database. The payment gateway is a
fake that keeps sessions in memory but verifies webhook signatures with the
real Stripe library.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["REDIS_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")

import hashlib
import hmac
import json
import time
from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from ticketing.main import app
from ticketing.core.config import get_settings
from ticketing.core.errors import UpstreamError
from ticketing.core.security import create_access_token
from ticketing.db.base import Base
from ticketing.db.session import get_db
from ticketing.models import (
    User, Organizer, Event, TicketType, EventTicketSettings, FeePayer,
)
from ticketing.services.gateway_factory import get_payment_gateway
from ticketing.services.interfaces.payment_gateway import (
    CheckoutSessionResult, CheckoutSessionStatus,
)
from ticketing.services.stripe_gateway import StripeGateway

WEBHOOK_SECRET = get_settings().STRIPE_WEBHOOK_SECRET


class FakeGateway(StripeGateway):
    """In-memory processor; signature verification is inherited unchanged."""

    def __init__(self):
        super().__init__(api_key="sk_test_dummy", webhook_secret=WEBHOOK_SECRET)
        self.customers: dict[str, str] = {}
        self.customer_calls = 0
        self.session_requests = []
        self.session_status: dict[str, CheckoutSessionStatus] = {}
        self.fail_checkout = False
        self.fail_retrieve = False

    async def find_or_create_customer(self, email: str, user_id: int) -> str:
        self.customer_calls += 1
        if email not in self.customers:
            self.customers[email] = f"cus_test_{len(self.customers) + 1}"
        return self.customers[email]

    async def create_checkout_session(self, request):
        if self.fail_checkout:
            raise UpstreamError("Could not start checkout, please try again")
        self.session_requests.append(request)
        session_id = f"cs_test_{len(self.session_requests)}"
        self.session_status[session_id] = CheckoutSessionStatus(
            session_id=session_id, status="open", payment_status="unpaid", payment_intent_id=None
        )
        return CheckoutSessionResult(
            session_id=session_id, url=f"https://checkout.stripe.test/pay/{session_id}"
        )

    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSessionStatus:
        if self.fail_retrieve:
            raise UpstreamError("Could not verify payment, please try again")
        return self.session_status[session_id]

    def mark_paid(self, session_id: str, payment_intent_id: str = "pi_test_1") -> None:
        self.session_status[session_id] = CheckoutSessionStatus(
            session_id=session_id,
            status="complete",
            payment_status="paid",
            payment_intent_id=payment_intent_id,
        )

    def mark_expired(self, session_id: str) -> None:
        self.session_status[session_id] = CheckoutSessionStatus(
            session_id=session_id, status="expired", payment_status="unpaid", payment_intent_id=None
        )


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Build a stripe-signature header the way the processor does."""
    timestamp = timestamp or int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"), f"{timestamp}.{payload}".encode("utf-8"), hashlib.sha256
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


def make_event(event_type: str, obj: dict, event_id: str = "evt_test_1") -> dict:
    return {"id": event_id, "object": "event", "type": event_type, "data": {"object": obj}}


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession, fake_gateway: FakeGateway
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with the DB session and payment gateway overridden."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: fake_gateway

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def post_webhook(client: AsyncClient):
    """Send a correctly signed webhook delivery."""

    async def _post(event: dict):
        payload = json.dumps(event)
        return await client.post(
            "/api/v1/webhooks/stripe",
            content=payload,
            headers={"stripe-signature": sign_payload(payload), "content-type": "application/json"},
        )

    return _post


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """The buyer."""
    user = User(email="buyer@example.com", display_name="Test Buyer", phone="+5511999990000")
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def organizer_user(db_session: AsyncSession) -> User:
    user = User(email="organizer@example.com", display_name="Organizer")
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def organizer(db_session: AsyncSession, organizer_user: User) -> Organizer:
    organizer = Organizer(
        user_id=organizer_user.id,
        name="Test Productions",
        stripe_account_id="acct_test_123",
        stripe_charges_enabled=True,
    )
    db_session.add(organizer)
    await db_session.commit()
    await db_session.refresh(organizer)
    return organizer


@pytest_asyncio.fixture
async def test_event(db_session: AsyncSession, organizer: Organizer) -> Event:
    event = Event(
        organizer_id=organizer.id,
        title="Test Concert",
        event_date=datetime.now(timezone.utc) + timedelta(days=30),
        location="Test Venue",
    )
    db_session.add(event)
    await db_session.commit()
    await db_session.refresh(event)
    return event


@pytest_asyncio.fixture
async def ticket_type(db_session: AsyncSession, test_event: Event) -> TicketType:
    """General admission: 100.00 each, 100 available, up to 10 per purchase."""
    ticket_type = TicketType(
        event_id=test_event.id,
        name="General Admission",
        description="Standing area",
        price=Decimal("100.00"),
        quantity=100,
        quantity_sold=0,
        max_quantity_per_purchase=10,
    )
    db_session.add(ticket_type)
    await db_session.commit()
    await db_session.refresh(ticket_type)
    return ticket_type


@pytest_asyncio.fixture
async def fee_settings(db_session: AsyncSession, test_event: Event) -> EventTicketSettings:
    settings = EventTicketSettings(
        event_id=test_event.id,
        platform_fee_percentage=Decimal("5"),
        payment_processing_fee_percentage=Decimal("3.99"),
        payment_processing_fee_fixed=Decimal("0.39"),
        fee_payer=FeePayer.BUYER,
    )
    db_session.add(settings)
    await db_session.commit()
    await db_session.refresh(settings)
    return settings


@pytest_asyncio.fixture
async def auth_token(test_user: User) -> str:
    return create_access_token(data={"sub": str(test_user.id)})


@pytest_asyncio.fixture
async def auth_headers(auth_token: str) -> dict:
    """Authorization headers with Bearer token."""
    return {"Authorization": f"Bearer {auth_token}"}


@pytest_asyncio.fixture
async def checkout(client: AsyncClient, auth_headers, ticket_type, fee_settings):
    """Create a checkout for 2 tickets and return the response JSON."""
    response = await client.post(
        "/api/v1/checkout/sessions",
        json={"ticketTypeId": ticket_type.id, "quantity": 2, "eventId": ticket_type.event_id},
        headers=auth_headers,
    )
    assert response.status_code == 200, response.text
    return response.json()
