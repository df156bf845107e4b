"""
RSVP error taxonomy.

Every failure the RSVP core reports to a caller is one of these. Each class
carries the HTTP status the API layer answers with and a stable machine code,
so routes never translate errors by hand.
"""

from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse


class RsvpError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "rsvp_error"
    default_message: str = "RSVP request failed"

    def __init__(self, message: Optional[str] = None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)


class EventNotFound(RsvpError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "event_not_found"
    default_message = "Event not found"


class EventNotEligible(RsvpError):
    # Unapproved events are invisible to attendees, hence 404 rather than 400
    status_code = status.HTTP_404_NOT_FOUND
    code = "event_not_eligible"
    default_message = "Event not found"


class EventAlreadyStarted(RsvpError):
    code = "event_already_started"
    default_message = "Cannot RSVP to an event that has already started"


class RsvpWindowClosed(RsvpError):
    code = "rsvp_window_closed"
    default_message = "RSVP deadline has passed"


class EventFull(RsvpError):
    code = "event_full"
    default_message = "Event is full"


class InvalidRsvpStatus(RsvpError):
    code = "invalid_rsvp_status"
    default_message = "RSVP status must be 'going' or 'interested'"


class DuplicateRsvp(RsvpError):
    status_code = status.HTTP_409_CONFLICT
    code = "duplicate_rsvp"
    default_message = "You already have an RSVP for this event"


class RsvpNotFound(RsvpError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "rsvp_not_found"
    default_message = "RSVP not found"


class StoreConflict(RsvpError):
    status_code = status.HTTP_409_CONFLICT
    code = "store_conflict"
    default_message = "RSVP changed concurrently. Please try again."


async def rsvp_error_handler(request: Request, exc: RsvpError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )
