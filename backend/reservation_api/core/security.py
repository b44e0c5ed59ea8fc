"""
JWT bearer tokens and the Actor capability passed into lifecycle operations.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from reservation_api.core.config import get_settings
from reservation_api.core.errors import Unauthorized

ROLE_USER = "user"
ROLE_ADMIN = "admin"

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Actor:
    """The authenticated caller: who they are and what they may do."""

    user_id: int
    role: str = ROLE_USER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def can_manage(self, owner_id: int) -> bool:
        return self.is_admin or self.user_id == owner_id


def create_access_token(data: dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode["exp"] = expire
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode a bearer token. Raises Unauthorized if invalid, expired or missing `sub`."""
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            options={"require": ["exp", "sub"]},
        )
    except jwt.PyJWTError as e:
        raise Unauthorized("Invalid or expired token") from e
    return payload


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> int:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise Unauthorized()
    payload = decode_access_token(credentials.credentials)
    try:
        return int(payload["sub"])
    except (TypeError, ValueError) as e:
        raise Unauthorized("Invalid token subject") from e
