"""
Pydantic schemas for reservation and checkout request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from reservation_api.schemas.event import EventResponse
from reservation_api.schemas.user import UserResponse


class ReservationCreate(BaseModel):
    event_id: int


class ReservationResponse(BaseModel):
    id: int
    user_id: int
    event_id: int
    status: str
    payment_status: str
    amount: int
    checked_in_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}


class ReservationWithEventResponse(ReservationResponse):
    event: EventResponse


class AdminReservationResponse(ReservationWithEventResponse):
    user: UserResponse
    stripe_session_id: Optional[str]
    stripe_payment_intent_id: Optional[str]


class CancelResponse(BaseModel):
    success: bool = True
    refunded: bool
    reservation: ReservationResponse


class CheckInResponse(BaseModel):
    success: bool = True
    reservation: ReservationResponse


class CheckoutRequest(BaseModel):
    event_id: int


class CheckoutResponse(BaseModel):
    url: str
    reservation_id: int


class WebhookAck(BaseModel):
    received: bool = True


class AdminStatsResponse(BaseModel):
    events: int
    active_reservations: int
    users: int
