"""
Reservation endpoints: free reservations, listing, cancellation and check-in.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_api.api.deps import get_current_actor, get_dispatcher, get_payment_gateway
from reservation_api.core.security import Actor
from reservation_api.db.session import get_db
from reservation_api.schemas.reservation import (
    CancelResponse,
    CheckInResponse,
    ReservationCreate,
    ReservationResponse,
    ReservationWithEventResponse,
)
from reservation_api.services.interfaces.payment_gateway import PaymentGateway
from reservation_api.services.notification_service import NotificationDispatcher
from reservation_api.services.reservation_service import (
    cancel_reservation,
    check_in,
    create_free_reservation,
    get_user_reservations,
)

router = APIRouter(prefix="/reservations", tags=["Reservations"])


@router.post("/", response_model=ReservationResponse, status_code=status.HTTP_201_CREATED)
async def create_reservation_endpoint(
    reservation_data: ReservationCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    Reserve a free event. Paid events go through POST /checkout instead.
    Returns 409 when the event is full or the user already holds a reservation.
    """
    return await create_free_reservation(db, actor, reservation_data.event_id, dispatcher)


@router.get("/", response_model=list[ReservationWithEventResponse])
async def list_my_reservations_endpoint(
    event_id: Optional[int] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """The caller's own reservations, newest first."""
    return await get_user_reservations(db, actor, event_id)


@router.post("/{reservation_id}/cancel", response_model=CancelResponse)
async def cancel_reservation_endpoint(
    reservation_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Cancel a reservation (owner or organizer). Paid reservations are refunded first."""
    reservation, refunded = await cancel_reservation(db, actor, reservation_id, gateway, dispatcher)
    return CancelResponse(refunded=refunded, reservation=ReservationResponse.model_validate(reservation))


@router.post("/{reservation_id}/checkin", response_model=CheckInResponse)
async def check_in_endpoint(
    reservation_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Check a reservation in at the venue. Organizer only."""
    reservation = await check_in(db, actor, reservation_id)
    return CheckInResponse(reservation=ReservationResponse.model_validate(reservation))
