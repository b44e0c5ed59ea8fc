"""
Pytest fixtures for test database, client, authentication and collaborators.

Each test gets a fresh in-memory SQLite schema (the partial unique index on
active reservations is supported there too). Stripe is replaced by a gateway
that keeps real webhook signature verification but records checkout and
refund calls in memory; email goes to a recording notifier.
"""

import hashlib
import hmac
import json
import os
import time
import uuid
from datetime import datetime, timezone, timedelta
from typing import AsyncGenerator, Optional

# Settings are cached on first use, so the environment is prepared before the app import
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("LINE_CHANNEL_ID", "1234567890")
os.environ.setdefault("ADMIN_LINE_USER_IDS", '["U_organizer"]')
os.environ.setdefault("PUBLIC_BASE_URL", "https://reserve.example.com")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from reservation_api.main import app
from reservation_api.api.deps import get_dispatcher, get_payment_gateway
from reservation_api.core.config import get_settings
from reservation_api.core.security import create_access_token
from reservation_api.db.base import Base
from reservation_api.db.session import get_db
from reservation_api.infrastructure.stripe_gateway import StripeGateway
from reservation_api.models.event import Event
from reservation_api.models.reservation import Reservation
from reservation_api.models.user import User
from reservation_api.services.interfaces.notifier import Notifier
from reservation_api.services.interfaces.payment_gateway import (
    CheckoutRequestData,
    CheckoutSession,
    PaymentGatewayError,
)
from reservation_api.services.notification_service import NotificationDispatcher

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
WEBHOOK_SECRET = os.environ["STRIPE_WEBHOOK_SECRET"]


class FakePaymentGateway(StripeGateway):
    """Real Stripe signature checks; checkout sessions and refunds recorded in memory."""

    def __init__(self):
        super().__init__(get_settings())
        self.checkouts: list[CheckoutRequestData] = []
        self.refunds: list[tuple[str, str]] = []
        self.fail_checkout = False
        self.fail_refund = False

    async def create_checkout_session(self, request: CheckoutRequestData) -> CheckoutSession:
        if self.fail_checkout:
            raise PaymentGatewayError("checkout_session_create failed: api_connection_error")
        self.checkouts.append(request)
        session_id = f"cs_test_{len(self.checkouts)}"
        return CheckoutSession(id=session_id, url=f"https://checkout.stripe.com/c/pay/{session_id}")

    async def refund(self, payment_intent_id: str, idempotency_key: str) -> str:
        if self.fail_refund:
            raise PaymentGatewayError("refund_create failed: charge_already_refunded")
        self.refunds.append((payment_intent_id, idempotency_key))
        return f"re_test_{len(self.refunds)}"


class RecordingNotifier(Notifier):
    def __init__(self):
        self.sent: list[dict] = []
        self.fail = False

    async def send(self, to: str, subject: str, body: str) -> None:
        if self.fail:
            raise ConnectionError("SMTP server unreachable")
        self.sent.append({"to": to, "subject": subject, "body": body})


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header the way Stripe does."""
    timestamp = timestamp or int(time.time())
    signature = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def checkout_completed_event(
    reservation_id: Optional[int],
    session_id: str = "cs_test_1",
    payment_intent: str = "pi_test_1",
    payment_status: str = "paid",
    event_id: Optional[str] = None,
) -> str:
    metadata = {} if reservation_id is None else {"reservation_id": str(reservation_id)}
    return json.dumps({
        "id": event_id or f"evt_{uuid.uuid4().hex[:16]}",
        "object": "event",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": session_id,
                "object": "checkout.session",
                "payment_status": payment_status,
                "payment_intent": payment_intent,
                "metadata": metadata,
            }
        },
    })


def auth_headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(user.id)})}"}


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables on a fresh in-memory database, yield a session, then dispose."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
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
def payment_gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def dispatcher(notifier: RecordingNotifier) -> NotificationDispatcher:
    return NotificationDispatcher(notifier)


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    payment_gateway: FakePaymentGateway,
    dispatcher: NotificationDispatcher,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with the DB session and external collaborators overridden."""

    async def override_get_db():
        # Same commit/rollback contract as reservation_api.db.session.get_db
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: payment_gateway
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def make_user(db_session: AsyncSession):
    async def _make(role: str = "user", email: Optional[str] = None, display_name: str = "Test User") -> User:
        user = User(
            line_user_id=f"U{uuid.uuid4().hex}",
            display_name=display_name,
            email=email if email is not None else f"{uuid.uuid4().hex[:8]}@example.com",
            role=role,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make


@pytest_asyncio.fixture
async def make_event(db_session: AsyncSession):
    async def _make(
        price: int = 0,
        capacity: int = 0,
        is_published: bool = True,
        title: str = "Test Concert",
        days_ahead: int = 30,
    ) -> Event:
        event = Event(
            title=title,
            description="A test event",
            event_date=datetime.now(timezone.utc) + timedelta(days=days_ahead),
            venue="Test Venue",
            price=price,
            capacity=capacity,
            is_published=is_published,
        )
        db_session.add(event)
        await db_session.commit()
        await db_session.refresh(event)
        return event

    return _make


@pytest_asyncio.fixture
async def make_reservation(db_session: AsyncSession):
    async def _make(
        user: User,
        event: Event,
        status: str = "confirmed",
        payment_status: str = "unpaid",
        amount: int = 0,
        stripe_session_id: Optional[str] = None,
        stripe_payment_intent_id: Optional[str] = None,
    ) -> Reservation:
        reservation = Reservation(
            user_id=user.id,
            event_id=event.id,
            status=status,
            payment_status=payment_status,
            amount=amount,
            stripe_session_id=stripe_session_id,
            stripe_payment_intent_id=stripe_payment_intent_id,
        )
        db_session.add(reservation)
        await db_session.commit()
        await db_session.refresh(reservation)
        return reservation

    return _make


@pytest_asyncio.fixture
async def test_user(make_user) -> User:
    return await make_user(display_name="Taro", email="taro@example.com")


@pytest_asyncio.fixture
async def other_user(make_user) -> User:
    return await make_user(display_name="Hanako", email="hanako@example.com")


@pytest_asyncio.fixture
async def admin_user(make_user) -> User:
    return await make_user(role="admin", display_name="Organizer", email="organizer@example.com")


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    return auth_headers_for(test_user)


@pytest.fixture
def other_headers(other_user: User) -> dict:
    return auth_headers_for(other_user)


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return auth_headers_for(admin_user)


async def fetch_reservation(db_session: AsyncSession, reservation_id: int) -> Reservation:
    """Load the committed state of a reservation, bypassing the identity map."""
    reservation = await db_session.get(Reservation, reservation_id, populate_existing=True)
    assert reservation is not None
    return reservation
