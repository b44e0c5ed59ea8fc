"""
Authentication endpoints: LINE login and current profile.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_api.api.deps import get_current_user, get_line_client
from reservation_api.db.session import get_db
from reservation_api.infrastructure.line_client import LineClient
from reservation_api.models.user import User
from reservation_api.schemas.user import LineLoginRequest, Token, UserResponse
from reservation_api.services.auth_service import login_with_line

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/line", response_model=Token)
async def line_login(
    login_data: LineLoginRequest,
    db: AsyncSession = Depends(get_db),
    line_client: LineClient = Depends(get_line_client),
):
    """Exchange a LINE ID token for an API access token."""
    user, token = await login_with_line(db, line_client, login_data)
    return Token(access_token=token, user=UserResponse.model_validate(user))


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)):
    """Profile of the authenticated user."""
    return user
