"""
Event catalog: organizer CRUD and public listing.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_api.core.errors import EventHasReservations, Forbidden, NotFound
from reservation_api.core.logging import get_logger
from reservation_api.core.security import Actor
from reservation_api.models.event import Event
from reservation_api.models.reservation import Reservation
from reservation_api.schemas.event import EventCreate, EventUpdate

logger = get_logger(__name__)


def _require_admin(actor: Actor) -> None:
    if not actor.is_admin:
        raise Forbidden("Organizer privileges required")


async def create_event(db: AsyncSession, actor: Actor, event_data: EventCreate) -> Event:
    _require_admin(actor)
    event = Event(**event_data.model_dump(), created_by=actor.user_id)
    db.add(event)
    await db.flush()
    await db.refresh(event)

    logger.info(
        "event_created",
        event_id=event.id,
        title=event.title,
        price=event.price,
        capacity=event.capacity,
        published=event.is_published,
    )
    return event


async def update_event(db: AsyncSession, actor: Actor, event_id: int, event_data: EventUpdate) -> Event:
    """
    Apply a partial update. Lowering capacity below the current active count
    is allowed; it only blocks new reservations.
    """
    _require_admin(actor)
    event = await get_event(db, event_id, include_unpublished=True)

    changes = event_data.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(event, field, value)
    await db.flush()
    await db.refresh(event)

    logger.info("event_updated", event_id=event.id, fields=sorted(changes))
    return event


async def delete_event(db: AsyncSession, actor: Actor, event_id: int) -> None:
    """Delete an event. Reservations are never deleted, so events with any are kept."""
    _require_admin(actor)
    event = await get_event(db, event_id, include_unpublished=True)

    reservation_total = (
        await db.execute(select(func.count(Reservation.id)).where(Reservation.event_id == event_id))
    ).scalar_one()
    if reservation_total:
        raise EventHasReservations()

    await db.delete(event)
    await db.flush()
    logger.info("event_deleted", event_id=event_id)


async def get_event(db: AsyncSession, event_id: int, include_unpublished: bool = False) -> Event:
    """Get a single event by ID. Unpublished events are hidden unless requested."""
    result = await db.execute(select(Event).where(Event.id == event_id))
    event = result.scalar_one_or_none()

    if not event or (not event.is_published and not include_unpublished):
        raise NotFound(f"Event {event_id} not found")
    return event


async def list_events(
    db: AsyncSession,
    published_only: bool = True,
    upcoming_only: bool = False,
    now: Optional[datetime] = None,
) -> list[Event]:
    """List events ordered by date. Uses the ix_events_published_date index."""
    query = select(Event)

    if published_only:
        query = query.where(Event.is_published.is_(True))
    if upcoming_only:
        query = query.where(Event.event_date >= (now or datetime.now(timezone.utc)))

    result = await db.execute(query.order_by(Event.event_date.asc(), Event.id.asc()))
    return list(result.scalars().all())
