"""
Pydantic schemas for event-related request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, model_validator


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field("", max_length=10000)
    image_url: Optional[str] = Field(None, max_length=1024)
    event_date: datetime
    venue: str = Field("", max_length=255)
    price: int = Field(0, ge=0, le=10_000_000)
    capacity: int = Field(0, ge=0, le=100_000)
    is_published: bool = False


class EventUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=10000)
    image_url: Optional[str] = Field(None, max_length=1024)
    event_date: Optional[datetime] = None
    venue: Optional[str] = Field(None, max_length=255)
    price: Optional[int] = Field(None, ge=0, le=10_000_000)
    capacity: Optional[int] = Field(None, ge=0, le=100_000)
    is_published: Optional[bool] = None

    @model_validator(mode="after")
    def only_image_url_can_be_cleared(self) -> "EventUpdate":
        for name in self.model_fields_set:
            if name != "image_url" and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class EventResponse(BaseModel):
    id: int
    title: str
    description: str
    image_url: Optional[str]
    event_date: datetime
    venue: str
    price: int
    capacity: int
    is_published: bool
    created_by: Optional[int]
    created_at: datetime

    model_config = {"from_attributes": True}


class EventDetailResponse(EventResponse):
    reserved_count: int
    # None when capacity is unlimited
    remaining: Optional[int]


class EventListResponse(BaseModel):
    events: list[EventResponse]
    total: int
    cached: bool = False


class ReservationCountResponse(BaseModel):
    event_id: int
    count: int
