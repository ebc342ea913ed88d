"""
Test fixtures for the Marketplace Payments test suite.

This module provides shared fixtures used across all test files:

  - db_engine / session_factory: Fresh in-memory SQLite database per test
  - gateways: Fake Stripe and Flutterwave gateways (no network)
  - notifier: Records every completed sale handed to the listing catalog
  - client: Async HTTP test client (unauthenticated)
  - buyer / other_buyer / seller / admin: Signed-up users, each with its
    own authenticated client
  - pay / send_stripe_webhook / send_flutterwave_webhook: request helpers

Key design decisions:
  - Gateway credentials and webhook secrets are set in the environment before
    the app is imported, so the real webhook verifiers run against signatures
    computed here.
  - get_db, get_gateways and get_listing_notifier are overridden; everything
    else runs exactly as in production.
  - Users are created through the signup endpoint. The admin signs up as a
    buyer and is promoted directly in the database, the way operators
    provision admins.
"""

import hashlib
import hmac
import json
import os
import time
import uuid
from dataclasses import dataclass

# Must be set before marketplace_payments.config is imported
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["FLUTTERWAVE_SECRET_KEY"] = "FLWSECK_TEST-dummy"
os.environ["FLUTTERWAVE_WEBHOOK_HASH"] = "flw-test-hash"
os.environ["LOG_JSON"] = "false"

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from marketplace_payments.database import Base, get_db
from marketplace_payments.dependencies import get_gateways, get_listing_notifier
from marketplace_payments.gateways.base import (
    InitiationRequest,
    InitiationResult,
    PaymentGateway,
)
from marketplace_payments.main import app
from marketplace_payments.models.transaction import PaymentProvider
from marketplace_payments.models.user import User, UserRole
from marketplace_payments.services.listing_notifier import ListingNotifier


# In-memory SQLite for fast, isolated tests
TEST_DATABASE_URL = "sqlite+aiosqlite://"

STRIPE_WEBHOOK_SECRET = os.environ["STRIPE_WEBHOOK_SECRET"]
FLUTTERWAVE_WEBHOOK_HASH = os.environ["FLUTTERWAVE_WEBHOOK_HASH"]


class FakeGateway(PaymentGateway):
    """
    A gateway that never leaves the process.

    References are sequential per gateway unless `reference` is pinned;
    setting `error` makes the next initiations raise it.
    """

    def __init__(self, provider: PaymentProvider, timeout: float = 5.0):
        super().__init__(timeout)
        self.provider = provider
        self.requests: list[InitiationRequest] = []
        self.error: Exception | None = None
        self.reference: str | None = None
        self._counter = 0

    async def _create_intent(self, request: InitiationRequest) -> InitiationResult:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        self._counter += 1
        reference = self.reference or f"{self.provider.value}_ref_{self._counter}"
        return InitiationResult(
            provider_reference=reference,
            client_handle=f"handle_for_{reference}",
        )


class RecordingNotifier(ListingNotifier):
    def __init__(self):
        self.completed = []
        self.fail = False

    async def transaction_completed(self, transaction) -> None:
        self.completed.append(transaction.id)
        if self.fail:
            raise RuntimeError("listing catalog unavailable")


@dataclass
class Actor:
    """A signed-up user and a client carrying their token."""
    client: AsyncClient
    user_id: uuid.UUID
    email: str


def stripe_signature(payload: bytes, secret: str = STRIPE_WEBHOOK_SECRET) -> str:
    """Build a Stripe-Signature header value the way Stripe signs deliveries."""
    timestamp = int(time.time())
    signed = f"{timestamp}.".encode("utf-8") + payload
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def stripe_event(event_type: str, **obj) -> dict:
    return {
        "id": f"evt_{uuid.uuid4().hex[:16]}",
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    }


def flutterwave_event(tx_ref: str, status: str = "successful", **extra) -> dict:
    data = {"id": 285959875, "tx_ref": tx_ref, "status": status, **extra}
    return {"event": "charge.completed", "data": data}


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def db_engine():
    """Create a fresh async engine with all tables for each test."""
    engine = create_async_engine(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Provide an async session bound to the test engine."""
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

@pytest.fixture
def gateways():
    return {
        PaymentProvider.STRIPE: FakeGateway(PaymentProvider.STRIPE),
        PaymentProvider.FLUTTERWAVE: FakeGateway(PaymentProvider.FLUTTERWAVE),
    }


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest_asyncio.fixture
async def test_app(session_factory, gateways, notifier):
    """The application wired to the test database, fake gateways and notifier."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateways] = lambda: gateways
    app.dependency_overrides[get_listing_notifier] = lambda: notifier
    yield app
    app.dependency_overrides.clear()


def _new_client(application) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=application), base_url="http://test")


@pytest_asyncio.fixture
async def client(test_app):
    """Unauthenticated client."""
    async with _new_client(test_app) as ac:
        yield ac


async def _signup(ac: AsyncClient, email: str, role: str = "buyer") -> Actor:
    response = await ac.post(
        "/auth/signup",
        json={
            "email": email,
            "password": "SecurePass123!",
            "full_name": email.split("@")[0].title(),
            "role": role,
        },
    )
    assert response.status_code == 201, f"Signup failed: {response.text}"
    data = response.json()
    ac.headers["Authorization"] = f"Bearer {data['token']}"
    return Actor(client=ac, user_id=uuid.UUID(data["user_id"]), email=email)


@pytest_asyncio.fixture
async def buyer(test_app):
    async with _new_client(test_app) as ac:
        yield await _signup(ac, "buyer@example.com")


@pytest_asyncio.fixture
async def other_buyer(test_app):
    """A second buyer for cross-user authorization tests."""
    async with _new_client(test_app) as ac:
        yield await _signup(ac, "otherbuyer@example.com")


@pytest_asyncio.fixture
async def seller(test_app):
    async with _new_client(test_app) as ac:
        yield await _signup(ac, "seller@example.com", role="seller")


@pytest_asyncio.fixture
async def admin(test_app, session_factory):
    """
    An ADMIN user.

    Signs up as a buyer, is promoted directly in the database, then logs in
    again for a fresh token.
    """
    async with _new_client(test_app) as ac:
        actor = await _signup(ac, "admin@example.com")

        async with session_factory() as session:
            await session.execute(
                update(User)
                .where(User.id == actor.user_id)
                .values(role=UserRole.ADMIN)
            )
            await session.commit()

        login_response = await ac.post(
            "/auth/login",
            json={"email": actor.email, "password": "SecurePass123!"},
        )
        assert login_response.status_code == 200
        ac.headers["Authorization"] = f"Bearer {login_response.json()['token']}"
        yield actor


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def pay(seller):
    """POST /payments as `actor`, for a listing sold by `seller`."""

    async def _pay(actor: Actor, headers: dict | None = None, **overrides):
        body = {
            "amount": "25.50",
            "currency": "USD",
            "listing_id": 101,
            "seller_id": str(seller.user_id),
            "provider": "stripe",
        }
        body.update(overrides)
        return await actor.client.post("/payments", json=body, headers=headers or {})

    return _pay


@pytest.fixture
def send_stripe_webhook(client):
    async def _send(event: dict, signature: str | None = None):
        payload = json.dumps(event).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        headers["Stripe-Signature"] = signature or stripe_signature(payload)
        return await client.post("/webhooks/stripe", content=payload, headers=headers)

    return _send


@pytest.fixture
def send_flutterwave_webhook(client):
    async def _send(event: dict, signature: str = FLUTTERWAVE_WEBHOOK_HASH):
        payload = json.dumps(event).encode("utf-8")
        return await client.post(
            "/webhooks/flutterwave",
            content=payload,
            headers={"Content-Type": "application/json", "verif-hash": signature},
        )

    return _send
