"""
Authentication service bridging LINE Login identities to local users.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_api.core.config import get_settings
from reservation_api.core.errors import Unauthorized
from reservation_api.core.logging import get_logger
from reservation_api.core.security import ROLE_ADMIN, ROLE_USER, Actor, create_access_token
from reservation_api.infrastructure.line_client import LineClient
from reservation_api.models.user import User
from reservation_api.schemas.user import LineLoginRequest

logger = get_logger(__name__)


async def login_with_line(
    db: AsyncSession,
    line_client: LineClient,
    login_data: LineLoginRequest,
) -> tuple[User, str]:
    """
    Verify a LINE ID token, create or refresh the matching user, and issue a JWT.
    Profile fields sent by the client take precedence over the token claims.
    """
    settings = get_settings()
    profile = await line_client.verify_id_token(login_data.id_token)

    result = await db.execute(select(User).where(User.line_user_id == profile.line_user_id))
    user = result.scalar_one_or_none()

    display_name = login_data.display_name or profile.name or ""
    picture_url = login_data.picture_url or profile.picture
    email = login_data.email or profile.email

    if user is None:
        user = User(
            line_user_id=profile.line_user_id,
            display_name=display_name,
            picture_url=picture_url,
            email=email,
            role=ROLE_USER,
        )
        db.add(user)
        logger.info("user_registered", line_user_id=profile.line_user_id)
    else:
        user.display_name = display_name
        user.picture_url = picture_url
        user.email = email

    if profile.line_user_id in settings.ADMIN_LINE_USER_IDS:
        user.role = ROLE_ADMIN

    await db.flush()
    await db.refresh(user)

    token = create_access_token(data={"sub": str(user.id)})
    logger.info("user_logged_in", user_id=user.id, role=user.role)
    return user, token


async def get_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        # Token outlived its user
        raise Unauthorized("User no longer exists")
    return user


def actor_for(user: User) -> Actor:
    return Actor(user_id=user.id, role=user.role)
