"""
Capacity counter and per-event writer serialization.

active_count is never cached or stored: it is recomputed from the
reservations table on every call, so it always reflects committed inserts.

Concurrent writers for one event are serialized by bumping Event.version
with a compare-and-swap UPDATE (optimistic locking). The writer whose UPDATE
matches holds the event row until its transaction ends, so any capacity
count it takes afterwards cannot be invalidated by another writer.
"""

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_api.models.event import Event
from reservation_api.models.reservation import ACTIVE_STATUSES, Reservation


async def active_count(db: AsyncSession, event_id: int) -> int:
    result = await db.execute(
        select(func.count(Reservation.id)).where(
            Reservation.event_id == event_id,
            Reservation.status.in_(ACTIVE_STATUSES),
        )
    )
    return result.scalar_one()


async def has_capacity(db: AsyncSession, event: Event) -> bool:
    if not event.is_limited:
        return True
    return await active_count(db, event.id) < event.capacity


async def claim_event(db: AsyncSession, event_id: int, seen_version: int) -> bool:
    """
    Bump the event version if nobody else has since `seen_version` was read.
    Returns False on a version conflict.
    """
    result = await db.execute(
        update(Event)
        .where(Event.id == event_id, Event.version == seen_version)
        .values(version=Event.version + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
