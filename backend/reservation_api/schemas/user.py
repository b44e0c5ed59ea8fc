"""
Pydantic schemas for LINE login and user profiles.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class LineLoginRequest(BaseModel):
    id_token: str = Field(..., min_length=1)
    display_name: Optional[str] = Field(None, max_length=255)
    picture_url: Optional[str] = Field(None, max_length=1024)
    email: Optional[str] = Field(None, max_length=255)


class UserResponse(BaseModel):
    id: int
    line_user_id: Optional[str]
    display_name: str
    picture_url: Optional[str]
    email: Optional[str]
    role: str
    created_at: datetime

    model_config = {"from_attributes": True}


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
