"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from reservation_api.api.routes import admin, auth, checkout, events, reservations, webhooks

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
api_router.include_router(events.router)
api_router.include_router(reservations.router)
api_router.include_router(checkout.router)
api_router.include_router(webhooks.router)
api_router.include_router(admin.router)
