"""
Payment gateway interface.
The lifecycle engine only talks to the payment provider through this seam,
so tests and alternative providers can be swapped in.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


class PaymentGatewayError(Exception):
    """Provider call failed, timed out, or returned an unusable result."""


class WebhookSignatureError(Exception):
    """Inbound webhook payload could not be authenticated."""


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: str


@dataclass(frozen=True)
class CheckoutRequestData:
    reservation_id: int
    event_id: int
    user_id: int
    amount: int
    product_name: str
    product_description: str
    image_url: str | None
    success_url: str
    cancel_url: str


class PaymentGateway(ABC):
    """
    Interface for the hosted-checkout payment provider.

    Implementations:
    - StripeGateway: Stripe Checkout + Refunds + signed webhooks
    """

    @abstractmethod
    async def create_checkout_session(self, request: CheckoutRequestData) -> CheckoutSession:
        """
        Create a hosted checkout session for one reservation.

        Raises:
            PaymentGatewayError: the provider could not create the session
        """

    @abstractmethod
    async def refund(self, payment_intent_id: str, idempotency_key: str) -> str:
        """
        Refund a completed charge in full. Returns the provider refund id.

        Raises:
            PaymentGatewayError: on any failure or timeout; the outcome must
            be treated as "not refunded"
        """

    @abstractmethod
    def verify_webhook(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """
        Authenticate a webhook payload and return the decoded event.

        Raises:
            WebhookSignatureError: missing or invalid signature
        """
