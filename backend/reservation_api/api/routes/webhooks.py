"""
Payment provider webhook receiver.
"""

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_api.api.deps import get_dispatcher, get_payment_gateway
from reservation_api.db.session import get_db
from reservation_api.schemas.reservation import WebhookAck
from reservation_api.services.interfaces.payment_gateway import PaymentGateway
from reservation_api.services.notification_service import NotificationDispatcher
from reservation_api.services.payment_service import handle_webhook

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(None, alias="Stripe-Signature"),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    Receive Stripe events. The raw body is needed for signature verification.
    Returns 400 on a bad signature; every verified delivery is acknowledged.
    """
    payload = await request.body()
    await handle_webhook(db, gateway, dispatcher, payload, stripe_signature)
    return WebhookAck()
