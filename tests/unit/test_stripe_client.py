"""Unit tests for the Stripe client wrapper"""

import asyncio
import hashlib
import hmac
import json
import time
import pytest
import stripe
from unittest.mock import MagicMock, patch
from permis_gateway.domain.exceptions import InvalidPayloadError, InvalidSignatureError, PaymentProviderError
from permis_gateway.infrastructure.clients.stripe_client import StripeClient, provider_error

SECRET = "whsec_unit"


def _sign(payload: bytes, secret: str = SECRET, timestamp: int | None = None) -> str:
    timestamp = timestamp or int(time.time())
    digest = hmac.new(secret.encode(), f"{timestamp}.".encode() + payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def _invalid_request(message: str = "No such checkout.session: 'cs_missing'") -> stripe.InvalidRequestError:
    return stripe.InvalidRequestError(
        message,
        "id",
        code="resource_missing",
        json_body={"error": {"message": message, "type": "invalid_request_error", "code": "resource_missing"}},
    )


@patch("stripe.checkout.Session.create")
def test_create_checkout_session_returns_id(mock_create: MagicMock):
    mock_create.return_value = {"id": "cs_test_1", "url": "https://checkout.stripe.com/c/pay/cs_test_1"}
    client = StripeClient(api_key="sk_test_1", webhook_secret="", api_version="2024-06-20")

    session_id = asyncio.run(client.create_checkout_session({"mode": "payment", "line_items": []}))

    assert session_id == "cs_test_1"
    kwargs = mock_create.call_args.kwargs
    assert kwargs["mode"] == "payment"
    assert kwargs["api_key"] == "sk_test_1"
    assert kwargs["stripe_version"] == "2024-06-20"


@patch("stripe.checkout.Session.retrieve")
def test_retrieve_session_expands_receipt_fields(mock_retrieve: MagicMock):
    mock_retrieve.return_value = {"id": "cs_test_1", "payment_intent": {"id": "pi_1", "amount": 99900}}
    client = StripeClient(api_key="sk_test_1")

    session = asyncio.run(client.retrieve_session("cs_test_1"))

    assert session["payment_intent"]["amount"] == 99900
    assert mock_retrieve.call_args.args == ("cs_test_1",)
    assert mock_retrieve.call_args.kwargs["expand"] == ["payment_intent", "subscription"]


@patch("stripe.Subscription.modify")
def test_schedule_cancellation_sets_cancel_at(mock_modify: MagicMock):
    mock_modify.return_value = {"id": "sub_1", "cancel_at": 1740736800}
    client = StripeClient(api_key="sk_test_1")

    result = asyncio.run(client.schedule_cancellation("sub_1", 1740736800))

    assert result["cancel_at"] == 1740736800
    assert mock_modify.call_args.args == ("sub_1",)
    assert mock_modify.call_args.kwargs["cancel_at"] == 1740736800
    assert "cancel_at_period_end" not in mock_modify.call_args.kwargs


@patch("stripe.checkout.Session.create")
def test_stripe_errors_become_provider_errors(mock_create: MagicMock):
    mock_create.side_effect = _invalid_request("Invalid currency: xyz")
    client = StripeClient(api_key="sk_test_1")

    with pytest.raises(PaymentProviderError) as exc:
        asyncio.run(client.create_checkout_session({"mode": "payment"}))

    assert exc.value.message == "Invalid currency: xyz"
    assert exc.value.code == "resource_missing"
    assert exc.value.type == "invalid_request_error"


def test_provider_error_without_json_body():
    err = provider_error(stripe.APIConnectionError("Network down"))
    assert "Network down" in err.message


def test_construct_event_verifies_signature():
    payload = json.dumps({"id": "evt_1", "type": "checkout.session.completed"}).encode()
    client = StripeClient(api_key="sk_test_1", webhook_secret=SECRET)

    event = client.construct_event(payload, _sign(payload))

    assert event["id"] == "evt_1"
    assert client.webhook_signing_enabled is True


def test_construct_event_rejects_bad_signature():
    payload = json.dumps({"id": "evt_1", "type": "checkout.session.completed"}).encode()
    client = StripeClient(api_key="sk_test_1", webhook_secret=SECRET)

    with pytest.raises(InvalidSignatureError):
        client.construct_event(payload, _sign(payload, secret="whsec_other"))


def test_construct_event_rejects_tampered_body():
    payload = json.dumps({"id": "evt_1", "type": "checkout.session.completed"}).encode()
    client = StripeClient(api_key="sk_test_1", webhook_secret=SECRET)
    signature = _sign(payload)

    with pytest.raises(InvalidSignatureError):
        client.construct_event(payload.replace(b"evt_1", b"evt_2"), signature)


def test_construct_event_rejects_stale_timestamp():
    """A correctly signed body replayed a day later is refused"""
    payload = json.dumps({"id": "evt_1", "type": "checkout.session.completed"}).encode()
    client = StripeClient(api_key="sk_test_1", webhook_secret=SECRET)

    with pytest.raises(InvalidSignatureError):
        client.construct_event(payload, _sign(payload, timestamp=int(time.time()) - 86400))


def test_construct_event_requires_signature_header():
    client = StripeClient(api_key="sk_test_1", webhook_secret=SECRET)
    with pytest.raises(InvalidSignatureError):
        client.construct_event(b'{"type": "ping"}', None)


def test_construct_event_unsigned_mode_trusts_json():
    client = StripeClient(api_key="sk_test_1", webhook_secret="")

    event = client.construct_event(b'{"id": "evt_2", "type": "invoice.paid"}', None)

    assert event["type"] == "invoice.paid"
    assert client.webhook_signing_enabled is False


@pytest.mark.parametrize("payload", [b"not json", b"[1, 2]", b'{"id": "evt"}', b"\xff\xfe"])
def test_construct_event_rejects_non_events(payload):
    client = StripeClient(api_key="sk_test_1", webhook_secret="")
    with pytest.raises(InvalidPayloadError):
        client.construct_event(payload, None)
