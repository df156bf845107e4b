from campusrsvp.schemas.event import EventCreate, EventResponse, EventListResponse
from campusrsvp.schemas.rsvp import RsvpCreate, RsvpResponse, RsvpCancelResponse, WaitlistSweepResponse
from campusrsvp.schemas.notification import NotificationResponse

__all__ = [
    "EventCreate", "EventResponse", "EventListResponse",
    "RsvpCreate", "RsvpResponse", "RsvpCancelResponse", "WaitlistSweepResponse",
    "NotificationResponse",
]
