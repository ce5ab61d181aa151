"""
Payment Routes - Razorpay order creation and webhook.

The webhook carries no bearer token; it is authenticated by the
X-Razorpay-Signature HMAC of its raw body.
"""

import time
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from structlog import get_logger

from creditgate.api.dependencies import get_credit_gate, get_current_user, get_payment_provider
from creditgate.config import Settings, get_settings
from creditgate.exceptions import (
    DuplicatePurchaseError,
    PaymentProviderError,
    ProfileNotFoundError,
    WebhookVerificationError,
)
from creditgate.models.api import CreateOrderRequest, WebhookAckResponse
from creditgate.models.domain import AuthenticatedUser
from creditgate.services.credit_gate import CreditGate
from creditgate.services.razorpay_provider import OrderIntent, RazorpayProvider

logger = get_logger(__name__)

router = APIRouter(prefix="/payment", tags=["payment"])


@router.post("/create-order")
async def create_order(
    body: CreateOrderRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    provider: RazorpayProvider = Depends(get_payment_provider),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """
    Create a Razorpay order for a credit purchase.

    ``amount`` is in minor units (paise). The caller's user id is stored in the
    order notes so the capture webhook knows whom to credit.
    """
    if not body.amount:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Amount is required.",
        )
    if body.amount < 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Amount must be a positive integer.",
        )
    if not provider.configured:
        logger.error("create_order_gateway_not_configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Payment gateway is not configured correctly.",
        )

    notes = {key: str(value) for key, value in body.notes.items()}
    notes["user_id"] = str(user.id)

    intent = OrderIntent(
        amount_minor=body.amount,
        currency=(body.currency or settings.default_currency).upper(),
        receipt=f"receipt_order_{int(time.time() * 1000)}",
        notes=notes,
    )

    try:
        order = await provider.create_order(intent)
    except PaymentProviderError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=exc.message,
        ) from exc

    return {**order, "key_id": provider.key_id}


@router.post("/webhook", response_model=WebhookAckResponse)
async def payment_webhook(
    request: Request,
    x_razorpay_signature: str | None = Header(None),
    provider: RazorpayProvider = Depends(get_payment_provider),
    gate: CreditGate = Depends(get_credit_gate),
    settings: Settings = Depends(get_settings),
) -> WebhookAckResponse:
    """
    Handle a Razorpay webhook delivery.

    Capture events credit ``amount // credit_price_minor`` credits to the
    user named in the payment notes, at most once per payment id.
    """
    payload = await request.body()

    try:
        event = await provider.verify_webhook(payload, x_razorpay_signature or "")
    except PaymentProviderError as exc:
        logger.error("webhook_not_configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=exc.message,
        ) from exc
    except WebhookVerificationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=exc.message,
        ) from exc

    if not event.is_capture:
        logger.info("webhook_event_ignored", event_type=event.event_type)
        return WebhookAckResponse(status="ignored")

    if not event.payment_id or not event.amount_minor:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Webhook payment entity is incomplete.",
        )

    raw_user_id = event.notes.get("user_id")
    try:
        user_id = UUID(raw_user_id) if raw_user_id else None
    except ValueError:
        user_id = None
    if user_id is None:
        logger.warning("webhook_missing_user", payment_id=event.payment_id)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Payment notes do not identify a user.",
        )

    credits = event.amount_minor // settings.credit_price_minor
    if credits <= 0:
        logger.info("webhook_amount_below_credit_price", payment_id=event.payment_id)
        return WebhookAckResponse(status="ignored", payment_id=event.payment_id)

    try:
        purchase = await gate.add_purchased_credits(
            user_id=user_id,
            credits=credits,
            payment_id=event.payment_id,
            order_id=event.order_id,
            amount_minor=event.amount_minor,
            currency=event.currency or settings.default_currency,
        )
    except DuplicatePurchaseError:
        logger.info("webhook_duplicate_payment", payment_id=event.payment_id)
        return WebhookAckResponse(status="duplicate", payment_id=event.payment_id)
    except ProfileNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User profile not found.",
        ) from exc

    return WebhookAckResponse(
        status="ok",
        payment_id=purchase.payment_id,
        credits_added=purchase.credits_added,
    )
