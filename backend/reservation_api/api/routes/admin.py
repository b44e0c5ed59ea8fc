"""
Organizer endpoints: dashboard counters and the full reservation list.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_api.api.deps import get_current_actor
from reservation_api.core.security import Actor
from reservation_api.db.session import get_db
from reservation_api.schemas.reservation import AdminReservationResponse, AdminStatsResponse
from reservation_api.services.admin_service import get_stats
from reservation_api.services.reservation_service import get_all_reservations

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/stats", response_model=AdminStatsResponse)
async def stats_endpoint(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Event, active reservation and user counts."""
    return await get_stats(db, actor)


@router.get("/reservations", response_model=list[AdminReservationResponse])
async def list_all_reservations_endpoint(
    event_id: Optional[int] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Every user's reservations, newest first, optionally for one event."""
    return await get_all_reservations(db, actor, event_id)
