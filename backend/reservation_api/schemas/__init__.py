from reservation_api.schemas.user import LineLoginRequest, UserResponse, Token
from reservation_api.schemas.event import (
    EventCreate, EventUpdate, EventResponse, EventDetailResponse, EventListResponse,
    ReservationCountResponse,
)
from reservation_api.schemas.reservation import (
    ReservationCreate, ReservationResponse, ReservationWithEventResponse,
    AdminReservationResponse, CancelResponse, CheckInResponse,
    CheckoutRequest, CheckoutResponse, WebhookAck, AdminStatsResponse,
)

__all__ = [
    "LineLoginRequest", "UserResponse", "Token",
    "EventCreate", "EventUpdate", "EventResponse", "EventDetailResponse", "EventListResponse",
    "ReservationCountResponse",
    "ReservationCreate", "ReservationResponse", "ReservationWithEventResponse",
    "AdminReservationResponse", "CancelResponse", "CheckInResponse",
    "CheckoutRequest", "CheckoutResponse", "WebhookAck", "AdminStatsResponse",
]
