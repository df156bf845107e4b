"""
Pydantic schemas for RSVP request/response validation.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel


class RsvpCreate(BaseModel):
    status: Literal["going", "interested"]


class RsvpResponse(BaseModel):
    id: int
    user_id: str
    event_id: int
    status: str
    rsvp_time: datetime
    cancelled_at: Optional[datetime]
    waitlist_position: Optional[int]
    promotion_expires_at: Optional[datetime]

    model_config = {"from_attributes": True}


class RsvpCancelResponse(BaseModel):
    message: str
    event_id: int
    status: str


class WaitlistSweepResponse(BaseModel):
    events_processed: int
    promotions: int
