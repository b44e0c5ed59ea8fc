"""
Organizer dashboard counters.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_api.core.errors import Forbidden
from reservation_api.core.security import Actor
from reservation_api.models.event import Event
from reservation_api.models.reservation import ACTIVE_STATUSES, Reservation
from reservation_api.models.user import User


async def get_stats(db: AsyncSession, actor: Actor) -> dict[str, int]:
    if not actor.is_admin:
        raise Forbidden("Organizer privileges required")

    events = (await db.execute(select(func.count(Event.id)))).scalar_one()
    active = (
        await db.execute(select(func.count(Reservation.id)).where(Reservation.status.in_(ACTIVE_STATUSES)))
    ).scalar_one()
    users = (await db.execute(select(func.count(User.id)))).scalar_one()
    return {"events": events, "active_reservations": active, "users": users}
