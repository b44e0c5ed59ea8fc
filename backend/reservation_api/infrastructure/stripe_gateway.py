"""
Stripe implementation of the PaymentGateway interface.

The stripe library is synchronous, so calls run in a worker thread and are
bounded by PAYMENT_TIMEOUT_SECONDS. A timeout is reported as a failure: the
caller never assumes a refund went through.
"""

import asyncio
import json
from typing import Any

import stripe

from reservation_api.core.config import Settings
from reservation_api.core.logging import get_logger
from reservation_api.services.interfaces.payment_gateway import (
    CheckoutRequestData,
    CheckoutSession,
    PaymentGateway,
    PaymentGatewayError,
    WebhookSignatureError,
)

logger = get_logger(__name__)


class StripeGateway(PaymentGateway):
    def __init__(self, settings: Settings):
        self.api_key = settings.STRIPE_SECRET_KEY
        self.webhook_secret = settings.STRIPE_WEBHOOK_SECRET
        self.currency = settings.STRIPE_CURRENCY
        self.locale = settings.STRIPE_LOCALE
        self.timeout = settings.PAYMENT_TIMEOUT_SECONDS

    async def _call(self, operation: str, fn, **params) -> Any:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(fn, api_key=self.api_key, **params),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error("stripe_call_timeout", operation=operation, timeout=self.timeout)
            raise PaymentGatewayError(f"{operation} timed out") from e
        except stripe.StripeError as e:
            logger.error(
                "stripe_call_failed",
                operation=operation,
                error=str(e),
                code=getattr(e, "code", None),
            )
            raise PaymentGatewayError(f"{operation} failed: {e}") from e

    async def create_checkout_session(self, request: CheckoutRequestData) -> CheckoutSession:
        product_data: dict[str, Any] = {"name": request.product_name}
        if request.product_description:
            product_data["description"] = request.product_description
        if request.image_url:
            product_data["images"] = [request.image_url]

        session = await self._call(
            "checkout_session_create",
            stripe.checkout.Session.create,
            payment_method_types=["card"],
            line_items=[
                {
                    "price_data": {
                        "currency": self.currency,
                        "product_data": product_data,
                        "unit_amount": request.amount,
                    },
                    "quantity": 1,
                }
            ],
            mode="payment",
            success_url=request.success_url,
            cancel_url=request.cancel_url,
            metadata={
                "reservation_id": str(request.reservation_id),
                "event_id": str(request.event_id),
                "user_id": str(request.user_id),
            },
            locale=self.locale,
        )
        if not session.url:
            raise PaymentGatewayError("checkout session has no redirect url")
        return CheckoutSession(id=session.id, url=session.url)

    async def refund(self, payment_intent_id: str, idempotency_key: str) -> str:
        refund = await self._call(
            "refund_create",
            stripe.Refund.create,
            payment_intent=payment_intent_id,
            idempotency_key=idempotency_key,
        )
        if refund.status in ("failed", "canceled"):
            raise PaymentGatewayError(f"refund {refund.id} ended with status {refund.status}")
        return refund.id

    def verify_webhook(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        if not signature:
            raise WebhookSignatureError("Missing signature")
        if not self.webhook_secret:
            raise WebhookSignatureError("Webhook secret is not configured")
        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(body, signature, self.webhook_secret)
            return json.loads(body)
        except (stripe.SignatureVerificationError, UnicodeDecodeError, ValueError) as e:
            raise WebhookSignatureError("Invalid signature") from e
