from reservation_api.models.user import User
from reservation_api.models.event import Event
from reservation_api.models.reservation import Reservation
from reservation_api.models.payment_webhook_event import PaymentWebhookEvent

__all__ = ["User", "Event", "Reservation", "PaymentWebhookEvent"]
