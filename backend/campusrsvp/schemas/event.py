"""
Pydantic schemas for event-related request/response validation.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    location: Optional[str] = Field(None, max_length=255)
    start_time: datetime
    end_time: datetime
    capacity: Optional[int] = Field(None, gt=0, le=100000)
    rsvp_buffer: int = Field(0, ge=0, le=10000)
    is_waitlist_enabled: bool = False
    rsvp_close_time: Optional[datetime] = None

    @field_validator("start_time", "end_time", "rsvp_close_time")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def check_times(self) -> "EventCreate":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        if self.rsvp_close_time and self.rsvp_close_time > self.start_time:
            raise ValueError("rsvp_close_time must not be after start_time")
        return self


class EventResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    location: Optional[str]
    start_time: datetime
    end_time: datetime
    capacity: Optional[int]
    rsvp_buffer: int
    is_waitlist_enabled: bool
    rsvp_close_time: Optional[datetime]
    status: str
    created_by: str
    created_at: datetime

    # Live counts, recomputed from the rsvps table for every response
    going_count: int = 0
    interested_count: int = 0
    waitlist_count: int = 0
    spots_left: Optional[int] = None

    model_config = {"from_attributes": True}


class EventListResponse(BaseModel):
    events: list[EventResponse]
    total: int
    page: int
    page_size: int
    cached: bool = False
