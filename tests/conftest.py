"""Pytest fixtures for testing"""

import hashlib
import hmac
import json
import time
import pytest
from datetime import datetime, timezone
from typing import Any, Dict, Generator, List, Optional, Tuple
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from permis_gateway.api.dependencies import get_cancellation_worker, get_payment_processor
from permis_gateway.api.main import create_app
from permis_gateway.domain.exceptions import PaymentProviderError
from permis_gateway.infrastructure.clients.stripe_client import PaymentProcessor, StripeClient
from permis_gateway.infrastructure.database.models import Base
from permis_gateway.infrastructure.database.session import get_db, get_session_factory
from permis_gateway.workers.cancellations import CancellationWorker


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

WEBHOOK_SECRET = "whsec_test_secret"


class FakePaymentProcessor(PaymentProcessor):
    """In-memory processor recording what the gateway asked for"""

    def __init__(self, webhook_secret: str = ""):
        self.created_sessions: List[Dict[str, Any]] = []
        self.cancellations: List[Tuple[str, int]] = []
        self.sessions: Dict[str, Dict[str, Any]] = {}
        self.create_error: Optional[PaymentProviderError] = None
        self.cancellation_failures = 0
        # Real signature verification and decoding
        self._stripe = StripeClient(api_key="sk_test_fake", webhook_secret=webhook_secret)

    @property
    def webhook_signing_enabled(self) -> bool:
        return self._stripe.webhook_signing_enabled

    async def create_checkout_session(self, params: Dict[str, Any]) -> str:
        if self.create_error is not None:
            raise self.create_error
        self.created_sessions.append(params)
        return f"cs_test_{len(self.created_sessions)}"

    async def retrieve_session(self, session_id: str) -> Dict[str, Any]:
        if session_id not in self.sessions:
            raise PaymentProviderError(
                f"No such checkout.session: '{session_id}'",
                code="resource_missing",
                type="invalid_request_error",
            )
        return self.sessions[session_id]

    async def schedule_cancellation(self, subscription_id: str, cancel_at: int) -> Dict[str, Any]:
        if self.cancellation_failures > 0:
            self.cancellation_failures -= 1
            raise PaymentProviderError("Connection error", code=None, type="api_connection_error")
        self.cancellations.append((subscription_id, cancel_at))
        return {"id": subscription_id, "cancel_at": cancel_at}

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        return self._stripe.construct_event(payload, signature)


def _sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Stripe-Signature header value for a payload"""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.".encode() + payload
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def completed_session_event(
    cycles: Any = "3",
    mode: str = "subscription",
    subscription: Optional[str] = "sub_123",
    created: datetime = datetime(2025, 1, 31, 10, 0, tzinfo=timezone.utc),
    event_id: str = "evt_123",
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """checkout.session.completed event as Stripe delivers it"""
    if metadata is None:
        metadata = {"offerId": "classique-20h", "firstName": "Ada", "lastName": "Lovelace", "phone": "0600000000"}
        if cycles is not None:
            metadata["cycles"] = str(cycles)
            metadata["mode"] = f"{cycles}x"
    return {
        "id": event_id,
        "object": "event",
        "type": "checkout.session.completed",
        "created": int(created.timestamp()),
        "data": {
            "object": {
                "id": "cs_test_abc",
                "object": "checkout.session",
                "mode": mode,
                "subscription": subscription,
                "created": int(created.timestamp()) - 120,
                "metadata": metadata,
            }
        },
    }


def _encode_event(event: Dict[str, Any]) -> bytes:
    return json.dumps(event).encode()


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def processor() -> FakePaymentProcessor:
    """Unsigned (development posture) fake processor"""
    return FakePaymentProcessor()


@pytest.fixture
def signed_processor() -> FakePaymentProcessor:
    """Fake processor verifying signatures against WEBHOOK_SECRET"""
    return FakePaymentProcessor(webhook_secret=WEBHOOK_SECRET)


def _make_client(db: Session, processor: FakePaymentProcessor) -> TestClient:
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
    app.dependency_overrides[get_payment_processor] = lambda: processor
    app.dependency_overrides[get_cancellation_worker] = lambda: CancellationWorker(
        TestingSessionLocal, processor, max_retries=2, backoff_base=0.0, max_attempts=5
    )
    return TestClient(app)


@pytest.fixture
def client(db: Session, processor: FakePaymentProcessor) -> TestClient:
    """Create FastAPI test client with test database and fake processor"""
    return _make_client(db, processor)


@pytest.fixture
def signed_client(db: Session, signed_processor: FakePaymentProcessor) -> TestClient:
    """Test client whose webhook requires valid signatures"""
    return _make_client(db, signed_processor)


@pytest.fixture
def make_event():
    """Factory for checkout.session.completed events"""
    return completed_session_event


@pytest.fixture
def post_event(client: TestClient):
    """POST an unsigned event to the webhook"""

    def _post(event: Dict[str, Any]):
        return client.post(
            "/webhooks/payment-events",
            content=_encode_event(event),
            headers={"content-type": "application/json"},
        )

    return _post


@pytest.fixture
def encode_event():
    """Serialise an event the way the processor sends it"""
    return _encode_event


@pytest.fixture
def sign_payload():
    """Stripe-Signature header builder (secret and timestamp overridable)"""
    return _sign_payload


@pytest.fixture
def session_factory() -> sessionmaker:
    """Session factory bound to the test database"""
    return TestingSessionLocal
