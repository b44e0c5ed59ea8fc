"""
Payment confirmation listener.

Consumes Stripe webhook deliveries. The provider retries and may deliver the
same event more than once, and a completion can arrive at any point in a
reservation's life, so this is treated as one more writer:

- the signature is verified before any field of the payload is trusted
- each provider event id is recorded once; a redelivery is acknowledged
  without being applied again
- the reservation row is locked and its current status decides the effect:
    pending            -> confirmed + paid (confirmation email sent once)
    confirmed/paid     -> no-op
    checked_in         -> status kept, payment recorded if still unpaid
    cancelled          -> terminal, nothing changes
- unknown reservations and unhandled event types are acknowledged, so the
  provider does not retry data that will never resolve
"""

from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_api.core.errors import PaymentVerificationFailed
from reservation_api.core.logging import get_logger
from reservation_api.core.metrics import record_transition, record_webhook
from reservation_api.models.event import Event
from reservation_api.models.payment_webhook_event import PaymentWebhookEvent
from reservation_api.models.reservation import (
    PAYMENT_PAID,
    PAYMENT_UNPAID,
    STATUS_CANCELLED,
    STATUS_CONFIRMED,
    STATUS_PENDING,
    Reservation,
)
from reservation_api.models.user import User
from reservation_api.services.interfaces.payment_gateway import PaymentGateway, WebhookSignatureError
from reservation_api.services.notification_service import NotificationDispatcher

logger = get_logger(__name__)

CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"

RESULT_APPLIED = "applied"
RESULT_DUPLICATE = "duplicate"
RESULT_IGNORED = "ignored"
RESULT_NOT_FOUND = "not_found"


def _payment_intent_id(session: dict[str, Any]) -> Optional[str]:
    payment_intent = session.get("payment_intent")
    if isinstance(payment_intent, dict):
        return payment_intent.get("id")
    return payment_intent


def _metadata_reservation_id(session: dict[str, Any]) -> Optional[int]:
    raw = (session.get("metadata") or {}).get("reservation_id")
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        logger.warning("webhook_bad_reservation_id", value=raw)
        return None


async def _find_reservation_for_session(db: AsyncSession, session: dict[str, Any]) -> Optional[Reservation]:
    reservation_id = _metadata_reservation_id(session)
    if reservation_id is not None:
        condition = Reservation.id == reservation_id
    elif session.get("id"):
        condition = Reservation.stripe_session_id == session["id"]
    else:
        return None

    result = await db.execute(
        select(Reservation)
        .where(condition)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _record_delivery(db: AsyncSession, provider_event_id: str, event_type: str) -> Optional[PaymentWebhookEvent]:
    """Insert the ledger row. Returns None when this event id was already processed."""
    existing = await db.execute(
        select(PaymentWebhookEvent.id).where(PaymentWebhookEvent.provider_event_id == provider_event_id)
    )
    if existing.scalar_one_or_none() is not None:
        return None

    entry = PaymentWebhookEvent(provider_event_id=provider_event_id, event_type=event_type)
    db.add(entry)
    try:
        await db.flush()
    except IntegrityError:
        # A concurrent delivery of the same event committed first
        await db.rollback()
        return None
    return entry


async def apply_checkout_completed(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    session: dict[str, Any],
) -> tuple[str, Optional[Reservation]]:
    """Advance the reservation behind a completed checkout session. Returns (result, reservation)."""
    if session.get("payment_status") != "paid":
        logger.info("checkout_completed_unpaid", session_id=session.get("id"))
        return RESULT_IGNORED, None

    reservation = await _find_reservation_for_session(db, session)
    if reservation is None:
        logger.warning(
            "webhook_reservation_not_found",
            session_id=session.get("id"),
            reservation_id=_metadata_reservation_id(session),
        )
        return RESULT_NOT_FOUND, None

    if reservation.status == STATUS_CANCELLED:
        logger.warning(
            "payment_for_cancelled_reservation",
            reservation_id=reservation.id,
            payment_intent=_payment_intent_id(session),
        )
        return RESULT_IGNORED, reservation

    newly_confirmed = reservation.status == STATUS_PENDING
    newly_paid = reservation.payment_status == PAYMENT_UNPAID
    if not newly_confirmed and not newly_paid:
        logger.info("payment_already_applied", reservation_id=reservation.id)
        return RESULT_DUPLICATE, reservation

    if newly_confirmed:
        reservation.status = STATUS_CONFIRMED
    if newly_paid:
        reservation.payment_status = PAYMENT_PAID
        reservation.stripe_payment_intent_id = _payment_intent_id(session)
    if not reservation.stripe_session_id and session.get("id"):
        reservation.stripe_session_id = session["id"]
    await db.flush()
    await db.refresh(reservation)

    logger.info(
        "payment_confirmed",
        reservation_id=reservation.id,
        status=reservation.status,
        payment_intent=reservation.stripe_payment_intent_id,
    )

    if newly_confirmed:
        record_transition(STATUS_CONFIRMED)
        user = await db.get(User, reservation.user_id)
        event = await db.get(Event, reservation.event_id)
        dispatcher.reservation_confirmed(user, event, reservation, db)
    return RESULT_APPLIED, reservation


async def handle_webhook(
    db: AsyncSession,
    gateway: PaymentGateway,
    dispatcher: NotificationDispatcher,
    payload: bytes,
    signature: Optional[str],
) -> str:
    """Verify and apply one webhook delivery. Returns the processing result."""
    try:
        event = gateway.verify_webhook(payload, signature)
    except WebhookSignatureError as e:
        record_webhook("unverified", "rejected")
        logger.warning("webhook_rejected", reason=str(e))
        raise PaymentVerificationFailed(str(e)) from e

    event_type = event.get("type") or "unknown"
    provider_event_id = event.get("id")

    ledger_entry = None
    if provider_event_id:
        ledger_entry = await _record_delivery(db, provider_event_id, event_type)
        if ledger_entry is None:
            logger.info("webhook_redelivered", provider_event_id=provider_event_id, event_type=event_type)
            record_webhook(event_type, RESULT_DUPLICATE)
            return RESULT_DUPLICATE

    if event_type != CHECKOUT_SESSION_COMPLETED:
        logger.debug("webhook_ignored", event_type=event_type)
        record_webhook(event_type, RESULT_IGNORED)
        return RESULT_IGNORED

    session = (event.get("data") or {}).get("object") or {}
    result, reservation = await apply_checkout_completed(db, dispatcher, session)
    if ledger_entry is not None and reservation is not None:
        ledger_entry.reservation_id = reservation.id
        await db.flush()

    record_webhook(event_type, result)
    return result
