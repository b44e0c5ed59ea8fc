"""
Shared FastAPI dependencies: the caller's Actor and external collaborators.

Collaborators are built once per process and can be replaced in tests
through app.dependency_overrides.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_api.core.config import get_settings
from reservation_api.core.security import Actor, get_current_user_id
from reservation_api.db.session import get_db
from reservation_api.infrastructure.line_client import LineClient
from reservation_api.infrastructure.mailer import build_notifier
from reservation_api.infrastructure.stripe_gateway import StripeGateway
from reservation_api.models.user import User
from reservation_api.services.auth_service import actor_for, get_user
from reservation_api.services.interfaces.payment_gateway import PaymentGateway
from reservation_api.services.notification_service import NotificationDispatcher


async def get_current_user(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> User:
    return await get_user(db, user_id)


async def get_current_actor(user: User = Depends(get_current_user)) -> Actor:
    """Role is read from the database on every request, never trusted from the token."""
    return actor_for(user)


@lru_cache()
def get_payment_gateway() -> PaymentGateway:
    return StripeGateway(get_settings())


@lru_cache()
def get_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(build_notifier(get_settings()))


@lru_cache()
def get_line_client() -> LineClient:
    return LineClient(get_settings())
