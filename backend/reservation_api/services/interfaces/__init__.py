"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .payment_gateway import (
    PaymentGateway,
    PaymentGatewayError,
    WebhookSignatureError,
    CheckoutSession,
    CheckoutRequestData,
)
from .notifier import Notifier

__all__ = [
    'PaymentGateway', 'PaymentGatewayError', 'WebhookSignatureError',
    'CheckoutSession', 'CheckoutRequestData', 'Notifier',
]
