"""
Paid checkout endpoint.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_api.api.deps import get_current_actor, get_payment_gateway
from reservation_api.core.security import Actor
from reservation_api.db.session import get_db
from reservation_api.schemas.reservation import CheckoutRequest, CheckoutResponse
from reservation_api.services.interfaces.payment_gateway import PaymentGateway
from reservation_api.services.reservation_service import initiate_paid_checkout

router = APIRouter(prefix="/checkout", tags=["Checkout"])


@router.post("/", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
async def checkout_endpoint(
    checkout_data: CheckoutRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Start a hosted checkout for a paid event.

    A pending reservation is created immediately and holds a capacity slot;
    it becomes confirmed when the payment webhook arrives.
    """
    reservation, url = await initiate_paid_checkout(db, actor, checkout_data.event_id, gateway)
    return CheckoutResponse(url=url, reservation_id=reservation.id)
