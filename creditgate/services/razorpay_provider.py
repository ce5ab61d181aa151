"""
Razorpay Payment Provider - Orders API and webhook verification.

Orders are created over the REST API with HTTP basic auth. Webhooks are
authenticated by an HMAC-SHA256 signature of the raw request body.
"""

import hashlib
import hmac
import json
import time
from dataclasses import dataclass, field
from typing import Any

import httpx
from structlog import get_logger

from creditgate.exceptions import PaymentProviderError, WebhookVerificationError
from creditgate.observability.metrics import metrics

logger = get_logger(__name__)

SERVICE = "razorpay"

# Events that mean money was captured for an order
CAPTURE_EVENTS = frozenset({"payment.captured", "order.paid"})


@dataclass(frozen=True)
class OrderIntent:
    """Request to create a Razorpay order."""

    amount_minor: int
    currency: str
    receipt: str
    notes: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class WebhookEvent:
    """
    Verified Razorpay webhook event.

    Payment fields are None for events that carry no payment entity.
    """

    event_type: str
    payment_id: str | None
    order_id: str | None
    amount_minor: int | None
    currency: str | None
    status: str | None
    notes: dict[str, str]

    @property
    def is_capture(self) -> bool:
        return self.event_type in CAPTURE_EVENTS


def compute_signature(secret: str, payload: bytes) -> str:
    """Hex HMAC-SHA256 of ``payload`` keyed by ``secret``."""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


class RazorpayProvider:
    """Razorpay payment provider."""

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        webhook_secret: str,
        api_base: str = "https://api.razorpay.com/v1",
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.key_id = key_id
        self.key_secret = key_secret
        self.webhook_secret = webhook_secret
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    @property
    def configured(self) -> bool:
        """True when API keys are present."""
        return bool(self.key_id and self.key_secret)

    async def create_order(self, intent: OrderIntent) -> dict[str, Any]:
        """
        Create an order.

        Returns:
            The order object exactly as Razorpay returned it

        Raises:
            PaymentProviderError: Keys missing or Razorpay call failed
        """
        if not self.configured:
            raise PaymentProviderError("Payment gateway is not configured correctly.")

        logger.info(
            "creating_razorpay_order",
            amount_minor=intent.amount_minor,
            currency=intent.currency,
            receipt=intent.receipt,
        )

        started = time.perf_counter()
        try:
            response = await self.http_client.post(
                f"{self.api_base}/orders",
                auth=(self.key_id, self.key_secret),
                json={
                    "amount": intent.amount_minor,
                    "currency": intent.currency,
                    "receipt": intent.receipt,
                    "notes": intent.notes,
                },
            )
        except httpx.HTTPError as exc:
            metrics.record_upstream_call(SERVICE, False, time.perf_counter() - started)
            logger.error("razorpay_order_request_error", error=str(exc))
            raise PaymentProviderError(f"Failed to create order with Razorpay: {exc}") from exc

        metrics.record_upstream_call(SERVICE, response.is_success, time.perf_counter() - started)

        if response.is_error:
            description = _error_description(response)
            logger.error(
                "razorpay_order_failed",
                status=response.status_code,
                error=description,
            )
            raise PaymentProviderError(description)

        order: dict[str, Any] = response.json()
        if not order:
            raise PaymentProviderError("Failed to create order with Razorpay.")

        logger.info("razorpay_order_created", order_id=order.get("id"))
        return order

    async def verify_webhook(self, payload: bytes, signature: str) -> WebhookEvent:
        """
        Verify and parse a webhook delivery.

        Raises:
            PaymentProviderError: Webhook secret not configured
            WebhookVerificationError: Signature mismatch or malformed body
        """
        if not self.webhook_secret:
            raise PaymentProviderError("Payment webhook is not configured.")

        expected = compute_signature(self.webhook_secret, payload)
        # Header text is latin-1 decoded; compare as bytes
        received = signature.encode("utf-8", "surrogateescape")
        if not signature or not hmac.compare_digest(expected.encode(), received):
            logger.warning("razorpay_webhook_signature_invalid", signature_present=bool(signature))
            raise WebhookVerificationError("Invalid signature.")

        try:
            body = json.loads(payload)
        except ValueError as exc:
            raise WebhookVerificationError("Malformed webhook payload.") from exc
        if not isinstance(body, dict):
            raise WebhookVerificationError("Malformed webhook payload.")

        event_type = str(body.get("event", ""))
        entities = body.get("payload") or {}
        payment = (entities.get("payment") or {}).get("entity") or {}
        order = (entities.get("order") or {}).get("entity") or {}
        notes = payment.get("notes") or order.get("notes") or {}
        if not isinstance(notes, dict):
            # Razorpay sends an empty list when an entity has no notes
            notes = {}

        event = WebhookEvent(
            event_type=event_type,
            payment_id=payment.get("id"),
            order_id=payment.get("order_id") or order.get("id"),
            amount_minor=payment.get("amount", order.get("amount_paid")),
            currency=payment.get("currency") or order.get("currency"),
            status=payment.get("status") or order.get("status"),
            notes={str(k): str(v) for k, v in notes.items()},
        )

        logger.info(
            "razorpay_webhook_verified",
            event_type=event.event_type,
            payment_id=event.payment_id,
        )
        return event

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()


def _error_description(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"Razorpay returned HTTP {response.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("description"):
        return str(error["description"])
    return f"Razorpay returned HTTP {response.status_code}"
