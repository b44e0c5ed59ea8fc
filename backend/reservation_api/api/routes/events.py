"""
Event endpoints. The public published listing is cached in Redis.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_api.api.deps import get_current_actor
from reservation_api.core.errors import Unauthorized
from reservation_api.core.logging import get_logger
from reservation_api.core.security import Actor, bearer_scheme, decode_access_token
from reservation_api.db.session import get_db
from reservation_api.schemas.event import (
    EventCreate,
    EventDetailResponse,
    EventListResponse,
    EventResponse,
    EventUpdate,
    ReservationCountResponse,
)
from reservation_api.services.auth_service import actor_for, get_user
from reservation_api.services.cache_service import get_cached_events, invalidate_event_cache, set_cached_events
from reservation_api.services.capacity import active_count
from reservation_api.services.event_service import create_event, delete_event, get_event, list_events, update_event

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


async def get_optional_actor(
    credentials=Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[Actor]:
    """Anonymous callers are allowed; a presented token must still be valid."""
    if credentials is None:
        return None
    payload = decode_access_token(credentials.credentials)
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError) as e:
        raise Unauthorized("Invalid token subject") from e
    return actor_for(await get_user(db, user_id))


@router.get("/", response_model=EventListResponse)
async def list_events_endpoint(
    published: bool = Query(True),
    upcoming: bool = Query(False),
    actor: Optional[Actor] = Depends(get_optional_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    List events ordered by date.
    Only organizers may list unpublished events; everyone else always gets
    the published listing, which is served from cache when possible.
    """
    published_only = published or actor is None or not actor.is_admin

    if published_only:
        cached = await get_cached_events(upcoming)
        if cached:
            logger.info("events_list_cache_hit", upcoming=upcoming)
            cached["cached"] = True
            return EventListResponse(**cached)

    events = await list_events(db, published_only=published_only, upcoming_only=upcoming)
    response_data = {
        "events": [EventResponse.model_validate(e).model_dump(mode="json") for e in events],
        "total": len(events),
        "cached": False,
    }

    if published_only:
        await set_cached_events(upcoming, response_data)

    return EventListResponse(**response_data)


@router.get("/{event_id}", response_model=EventDetailResponse)
async def get_event_endpoint(
    event_id: int,
    actor: Optional[Actor] = Depends(get_optional_actor),
    db: AsyncSession = Depends(get_db),
):
    """Get a single event with its live reservation count. Not cached."""
    event = await get_event(db, event_id, include_unpublished=bool(actor and actor.is_admin))
    reserved = await active_count(db, event.id)
    return EventDetailResponse(
        **EventResponse.model_validate(event).model_dump(),
        reserved_count=reserved,
        remaining=max(event.capacity - reserved, 0) if event.is_limited else None,
    )


@router.get("/{event_id}/reservation-count", response_model=ReservationCountResponse)
async def reservation_count_endpoint(event_id: int, db: AsyncSession = Depends(get_db)):
    """Active reservations (pending, confirmed, checked in) for a published event."""
    event = await get_event(db, event_id)
    return ReservationCountResponse(event_id=event.id, count=await active_count(db, event.id))


@router.post("/", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Create an event. Organizer only."""
    event = await create_event(db, actor, event_data)
    await db.commit()
    await invalidate_event_cache()
    return event


@router.put("/{event_id}", response_model=EventResponse)
async def update_event_endpoint(
    event_id: int,
    event_data: EventUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Update an event. Organizer only."""
    event = await update_event(db, actor, event_id, event_data)
    await db.commit()
    await invalidate_event_cache()
    return event


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event_endpoint(
    event_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Delete an event without reservations. Organizer only."""
    await delete_event(db, actor, event_id)
    await db.commit()
    await invalidate_event_cache()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
