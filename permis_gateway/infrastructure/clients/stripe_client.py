"""Stripe API client for checkout sessions, subscriptions and webhooks"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import stripe

from permis_gateway.config import settings
from permis_gateway.domain.exceptions import InvalidPayloadError, InvalidSignatureError, PaymentProviderError
from permis_gateway.infrastructure.observability.metrics import stripe_call_latency_histogram

logger = logging.getLogger(__name__)

SESSION_EXPAND = ["payment_intent", "subscription"]


class PaymentProcessor(ABC):
    """Operations the gateway needs from the payment processor"""

    @abstractmethod
    async def create_checkout_session(self, params: Dict[str, Any]) -> str:
        """Create a hosted checkout session, return its id"""

    @abstractmethod
    async def retrieve_session(self, session_id: str) -> Dict[str, Any]:
        """Fetch a session with payment intent and subscription expanded"""

    @abstractmethod
    async def schedule_cancellation(self, subscription_id: str, cancel_at: int) -> Dict[str, Any]:
        """Set a subscription's cancel_at (unix seconds)"""

    @abstractmethod
    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Authenticate and decode a webhook body"""

    @property
    @abstractmethod
    def webhook_signing_enabled(self) -> bool:
        """Whether webhook bodies are signature-checked"""


def configure_stripe() -> None:
    """Process-wide SDK settings: network retries and a bounded HTTP timeout"""
    stripe.max_network_retries = settings.stripe_max_network_retries
    stripe.default_http_client = stripe.RequestsClient(timeout=settings.http_timeout_seconds)


def _plain(value: Any) -> Any:
    """Convert StripeObject trees into JSON-ready dicts and lists"""
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict) and not isinstance(value, type):
        value = to_dict()
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_plain(item) for item in value]
    return value


def provider_error(e: stripe.StripeError) -> PaymentProviderError:
    """Keep the processor's own message, code and type for diagnostics"""
    error = getattr(e, "error", None)
    message = getattr(error, "message", None) or e.user_message or str(e) or "Payment provider error"
    code = getattr(error, "code", None) or e.code
    error_type = getattr(error, "type", None)
    return PaymentProviderError(message, code=code, type=error_type)


class StripeClient(PaymentProcessor):
    """Client for the Stripe API; the only module that calls Stripe"""

    def __init__(
        self,
        api_key: str | None = None,
        webhook_secret: str | None = None,
        api_version: str | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.stripe_secret_key
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.stripe_webhook_secret
        self.api_version = api_version or settings.stripe_api_version

    @property
    def webhook_signing_enabled(self) -> bool:
        return bool(self.webhook_secret)

    async def _call(self, operation: str, func: Any, *args: Any, **kwargs: Any) -> Any:
        """Run a blocking SDK call off the event loop, mapping SDK errors"""
        kwargs.setdefault("api_key", self.api_key)
        kwargs.setdefault("stripe_version", self.api_version)
        try:
            with stripe_call_latency_histogram.labels(operation=operation).time():
                return await asyncio.to_thread(func, *args, **kwargs)
        except stripe.StripeError as e:
            err = provider_error(e)
            logger.error(
                f"Stripe {operation} failed: {err.message}",
                extra={"operation": operation, "code": err.code, "type": err.type},
            )
            raise err from e

    async def create_checkout_session(self, params: Dict[str, Any]) -> str:
        session = await self._call("checkout_session_create", stripe.checkout.Session.create, **params)
        return session["id"]

    async def retrieve_session(self, session_id: str) -> Dict[str, Any]:
        session = await self._call(
            "checkout_session_retrieve",
            stripe.checkout.Session.retrieve,
            session_id,
            expand=SESSION_EXPAND,
        )
        return _plain(session)

    async def schedule_cancellation(self, subscription_id: str, cancel_at: int) -> Dict[str, Any]:
        subscription = await self._call(
            "subscription_modify",
            stripe.Subscription.modify,
            subscription_id,
            cancel_at=cancel_at,
        )
        return _plain(subscription)

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Verify and decode a webhook body.

        The signature covers the exact bytes received, so the body must not be
        parsed or re-serialised before this call. Without a configured secret
        the body is trusted as-is (development only).

        Raises:
            InvalidSignatureError: Secret configured and signature missing, wrong or
                older than the processor tolerance (300s)
            InvalidPayloadError: Body is not a JSON object
        """
        try:
            text = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidPayloadError("Webhook body is not UTF-8") from e

        if self.webhook_secret:
            if not signature:
                raise InvalidSignatureError("Missing Stripe-Signature header")
            try:
                stripe.WebhookSignature.verify_header(
                    text, signature, self.webhook_secret, tolerance=stripe.Webhook.DEFAULT_TOLERANCE
                )
            except stripe.SignatureVerificationError as e:
                raise InvalidSignatureError(str(e)) from e

        try:
            event = json.loads(text)
        except ValueError as e:
            raise InvalidPayloadError(f"Invalid JSON payload: {e}") from e
        if not isinstance(event, dict) or "type" not in event:
            raise InvalidPayloadError("Webhook body is not an event object")
        return event
