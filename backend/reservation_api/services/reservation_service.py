"""
Reservation lifecycle engine.

STATE MACHINE
=============

    create free  ──────────────► confirmed
    start checkout ─► pending ──(payment webhook)──► confirmed
    {pending, confirmed} ──check-in──► checked_in
    {pending, confirmed, checked_in} ──cancel──► cancelled   (terminal)

CONCURRENCY STRATEGY
====================

Capacity:
  Two users race for the last slot. Both count N-1 active reservations,
  both insert, the event ends up with N+1.

  Every reservation writer first bumps the event's version with
  UPDATE events SET version = version + 1 WHERE id = :id AND version = :seen.
  Zero rows means another writer got there first: roll back and retry.
  One row means we now hold the event row until commit, so the capacity
  count taken next is authoritative for this transaction.

Duplicates:
  The partial unique index uq_reservations_active_user_event is the
  authoritative guard. The SELECT before the insert only gives the common
  case a clean error; an IntegrityError on insert is mapped to
  DuplicateReservation. Capacity is checked first, so a caller who already
  holds the last slot of a full event gets CapacityExceeded.

Double cancellation / double refund:
  Cancel re-reads the reservation with SELECT ... FOR UPDATE and re-checks
  its status before calling the refund API. A second concurrent cancel waits
  on the row lock, then sees `cancelled` and fails without refunding. The
  refund also carries an idempotency key derived from the reservation id.

Refund atomicity:
  Nothing is written until the refund has succeeded. A failed or timed-out
  refund raises RefundFailed with the row untouched.
"""

import time
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from reservation_api.core.config import get_settings
from reservation_api.core.errors import (
    AlreadyCancelled,
    AlreadyCheckedIn,
    CapacityExceeded,
    DuplicateReservation,
    Forbidden,
    NotFound,
    NotPublished,
    PricingMismatch,
    RefundFailed,
    UpstreamUnavailable,
)
from reservation_api.core.logging import get_logger
from reservation_api.core.metrics import (
    db_retries,
    record_refund,
    record_reservation_attempt,
    record_transition,
    reservation_latency,
)
from reservation_api.core.security import Actor
from reservation_api.db.base import utc_now
from reservation_api.models.event import Event
from reservation_api.models.reservation import (
    ACTIVE_STATUSES,
    PAYMENT_PAID,
    PAYMENT_REFUNDED,
    PAYMENT_UNPAID,
    STATUS_CANCELLED,
    STATUS_CHECKED_IN,
    STATUS_CONFIRMED,
    STATUS_PENDING,
    Reservation,
)
from reservation_api.models.user import User
from reservation_api.services.capacity import claim_event, has_capacity
from reservation_api.services.interfaces.payment_gateway import (
    CheckoutRequestData,
    PaymentGateway,
    PaymentGatewayError,
)
from reservation_api.services.notification_service import NotificationDispatcher

logger = get_logger(__name__)

PATH_FREE = "free"
PATH_PAID = "paid"


async def _load_reservable_event(db: AsyncSession, event_id: int) -> Event:
    result = await db.execute(
        select(Event)
        .where(Event.id == event_id)
        .execution_options(populate_existing=True)
    )
    event = result.scalar_one_or_none()
    if not event:
        raise NotFound(f"Event {event_id} not found")
    if not event.is_published:
        raise NotPublished()
    return event


async def _find_active_reservation(db: AsyncSession, user_id: int, event_id: int) -> Optional[Reservation]:
    result = await db.execute(
        select(Reservation).where(
            Reservation.user_id == user_id,
            Reservation.event_id == event_id,
            Reservation.status.in_(ACTIVE_STATUSES),
        )
    )
    return result.scalars().first()


async def _lock_reservation(db: AsyncSession, reservation_id: int) -> Optional[Reservation]:
    """Read the reservation under a row lock, bypassing any stale identity-map copy."""
    result = await db.execute(
        select(Reservation)
        .where(Reservation.id == reservation_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _insert_reservation(
    db: AsyncSession,
    actor: Actor,
    event_id: int,
    path: str,
    check_price: Callable[[Event], None],
    build: Callable[[Event], Reservation],
) -> tuple[Reservation, Event]:
    """
    Shared create path: validate the event, serialize against other writers
    for it, enforce capacity and then uniqueness, then insert.
    """
    max_attempts = get_settings().RESERVATION_MAX_RETRIES

    for attempt in range(1, max_attempts + 1):
        event = await _load_reservable_event(db, event_id)
        check_price(event)

        if not await claim_event(db, event.id, event.version):
            db_retries.inc()
            logger.info(
                "reservation_retry",
                event_id=event_id,
                attempt=attempt,
                reason="version_conflict",
            )
            await db.rollback()
            if attempt == max_attempts:
                record_reservation_attempt(path, "error")
                raise UpstreamUnavailable("Reservation failed due to high demand. Please try again.")
            continue

        if not await has_capacity(db, event):
            logger.warning("reservation_failed_capacity", event_id=event.id, capacity=event.capacity)
            record_reservation_attempt(path, "capacity_exceeded")
            raise CapacityExceeded()

        if await _find_active_reservation(db, actor.user_id, event.id):
            record_reservation_attempt(path, "duplicate")
            raise DuplicateReservation()

        reservation = build(event)
        db.add(reservation)
        try:
            await db.flush()
        except IntegrityError as e:
            await db.rollback()
            record_reservation_attempt(path, "duplicate")
            raise DuplicateReservation() from e
        await db.refresh(reservation)

        logger.info(
            "reservation_created",
            reservation_id=reservation.id,
            user_id=actor.user_id,
            event_id=event.id,
            status=reservation.status,
            amount=reservation.amount,
            attempt=attempt,
        )
        record_reservation_attempt(path, "created")
        return reservation, event

    # Loop always returns or raises
    raise UpstreamUnavailable("Reservation failed unexpectedly")


async def create_free_reservation(
    db: AsyncSession,
    actor: Actor,
    event_id: int,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> Reservation:
    """Reserve a free event. The reservation is confirmed immediately."""

    def check_price(event: Event) -> None:
        if not event.is_free:
            raise PricingMismatch("Paid events must be reserved through checkout")

    def build(event: Event) -> Reservation:
        return Reservation(
            user_id=actor.user_id,
            event_id=event.id,
            status=STATUS_CONFIRMED,
            payment_status=PAYMENT_UNPAID,
            amount=0,
        )

    started = time.perf_counter()
    reservation, event = await _insert_reservation(db, actor, event_id, PATH_FREE, check_price, build)
    reservation_latency.labels(path=PATH_FREE).observe(time.perf_counter() - started)
    record_transition(STATUS_CONFIRMED)

    if dispatcher is not None and get_settings().NOTIFY_ON_FREE_RESERVATION:
        user = await db.get(User, actor.user_id)
        dispatcher.reservation_confirmed(user, event, reservation, db)
    return reservation


def _checkout_urls(event_id: int) -> tuple[str, str]:
    base_url = get_settings().PUBLIC_BASE_URL.rstrip("/")
    success_url = (
        f"{base_url}/checkout?event_id={event_id}&status=success&session_id={{CHECKOUT_SESSION_ID}}"
    )
    cancel_url = f"{base_url}/checkout?event_id={event_id}&status=cancel"
    return success_url, cancel_url


async def initiate_paid_checkout(
    db: AsyncSession,
    actor: Actor,
    event_id: int,
    gateway: PaymentGateway,
) -> tuple[Reservation, str]:
    """
    Hold a slot with a pending reservation and open a hosted checkout for it.
    Returns the reservation and the checkout URL to redirect the user to.

    The pending reservation counts against capacity until it is cancelled.
    If the provider call fails the error propagates and the request's
    transaction is rolled back, so no pending reservation is left behind.
    """

    def check_price(event: Event) -> None:
        if event.is_free:
            raise PricingMismatch("Free events do not need checkout")

    def build(event: Event) -> Reservation:
        return Reservation(
            user_id=actor.user_id,
            event_id=event.id,
            status=STATUS_PENDING,
            payment_status=PAYMENT_UNPAID,
            amount=event.price,
        )

    started = time.perf_counter()
    reservation, event = await _insert_reservation(db, actor, event_id, PATH_PAID, check_price, build)

    success_url, cancel_url = _checkout_urls(event.id)
    try:
        session = await gateway.create_checkout_session(
            CheckoutRequestData(
                reservation_id=reservation.id,
                event_id=event.id,
                user_id=actor.user_id,
                amount=reservation.amount,
                product_name=event.title,
                product_description=event.venue,
                image_url=event.image_url,
                success_url=success_url,
                cancel_url=cancel_url,
            )
        )
    except PaymentGatewayError as e:
        logger.error("checkout_session_failed", reservation_id=reservation.id, error=str(e))
        raise UpstreamUnavailable("Payment provider is unavailable, please retry") from e

    reservation.stripe_session_id = session.id
    await db.flush()
    reservation_latency.labels(path=PATH_PAID).observe(time.perf_counter() - started)

    logger.info("checkout_started", reservation_id=reservation.id, session_id=session.id)
    return reservation, session.url


async def check_in(db: AsyncSession, actor: Actor, reservation_id: int) -> Reservation:
    """Mark a reservation as attended. Organizer only."""
    if not actor.is_admin:
        raise Forbidden("Organizer privileges required")

    reservation = await _lock_reservation(db, reservation_id)
    if not reservation:
        raise NotFound("Reservation not found")
    if reservation.status == STATUS_CANCELLED:
        raise AlreadyCancelled("Cancelled reservations cannot be checked in")
    if reservation.status == STATUS_CHECKED_IN:
        raise AlreadyCheckedIn()

    reservation.status = STATUS_CHECKED_IN
    reservation.checked_in_at = utc_now()
    await db.flush()
    await db.refresh(reservation)
    record_transition(STATUS_CHECKED_IN)

    logger.info("reservation_checked_in", reservation_id=reservation.id, by=actor.user_id)
    return reservation


async def cancel_reservation(
    db: AsyncSession,
    actor: Actor,
    reservation_id: int,
    gateway: PaymentGateway,
    dispatcher: NotificationDispatcher,
) -> tuple[Reservation, bool]:
    """
    Cancel a reservation, refunding it first when it was paid.
    Returns the reservation and whether a refund was issued.
    """
    reservation = await _lock_reservation(db, reservation_id)
    if not reservation:
        raise NotFound("Reservation not found")
    if not actor.can_manage(reservation.user_id):
        raise Forbidden()
    if reservation.status == STATUS_CANCELLED:
        raise AlreadyCancelled()

    refunded = False
    if reservation.payment_status == PAYMENT_PAID:
        if reservation.stripe_payment_intent_id:
            try:
                refund_id = await gateway.refund(
                    reservation.stripe_payment_intent_id,
                    idempotency_key=f"reservation-{reservation.id}-refund",
                )
            except PaymentGatewayError as e:
                record_refund(succeeded=False)
                logger.error("refund_failed", reservation_id=reservation.id, error=str(e))
                raise RefundFailed() from e
            record_refund(succeeded=True)
            refunded = True
            logger.info("refund_issued", reservation_id=reservation.id, refund_id=refund_id)
        else:
            logger.warning("refund_skipped_no_payment_intent", reservation_id=reservation.id)

    reservation.status = STATUS_CANCELLED
    reservation.cancelled_at = utc_now()
    if refunded:
        reservation.payment_status = PAYMENT_REFUNDED
    await db.flush()
    await db.refresh(reservation)
    record_transition(STATUS_CANCELLED)

    logger.info(
        "reservation_cancelled",
        reservation_id=reservation.id,
        user_id=reservation.user_id,
        event_id=reservation.event_id,
        by=actor.user_id,
        refunded=refunded,
    )

    user = await db.get(User, reservation.user_id)
    event = await db.get(Event, reservation.event_id)
    dispatcher.reservation_cancelled(user, event, reservation, refunded, db)
    return reservation, refunded


async def get_user_reservations(
    db: AsyncSession,
    actor: Actor,
    event_id: Optional[int] = None,
) -> list[Reservation]:
    """Get all reservations of the caller, newest first, with their events."""
    query = (
        select(Reservation)
        .options(selectinload(Reservation.event))
        .execution_options(populate_existing=True)
        .where(Reservation.user_id == actor.user_id)
        .order_by(Reservation.created_at.desc(), Reservation.id.desc())
    )
    if event_id is not None:
        query = query.where(Reservation.event_id == event_id)

    result = await db.execute(query)
    return list(result.scalars().all())


async def get_all_reservations(
    db: AsyncSession,
    actor: Actor,
    event_id: Optional[int] = None,
) -> list[Reservation]:
    """Organizer view of every reservation, optionally for a single event."""
    if not actor.is_admin:
        raise Forbidden("Organizer privileges required")

    query = (
        select(Reservation)
        .options(selectinload(Reservation.event), selectinload(Reservation.user))
        .execution_options(populate_existing=True)
        .order_by(Reservation.created_at.desc(), Reservation.id.desc())
    )
    if event_id is not None:
        query = query.where(Reservation.event_id == event_id)

    result = await db.execute(query)
    return list(result.scalars().all())
