"""
Capacity policy: decides what happens to an RSVP request.

Pure functions over an event snapshot, the current `going` count and `now`.
Nothing here touches the database, so callers must pass counts they just
recomputed; a cached counter would reintroduce the lost-update race.

    max_capacity = capacity + rsvp_buffer      (unlimited when capacity is NULL)

    interested                         -> interested (never counted, never queued)
    going, going_count < max_capacity  -> going
    going, full, waitlist enabled      -> waitlisted
    going, full, no waitlist           -> EventFull
"""

from datetime import datetime
from typing import Optional

from campusrsvp.core.exceptions import (
    EventAlreadyStarted,
    EventFull,
    EventNotEligible,
    InvalidRsvpStatus,
    RsvpWindowClosed,
)
from campusrsvp.models.event import Event, EventStatus
from campusrsvp.models.rsvp import RsvpStatus

REQUESTABLE_STATUSES = (RsvpStatus.GOING.value, RsvpStatus.INTERESTED.value)


def max_capacity(event: Event) -> Optional[int]:
    """Total `going` slots, or None when the event is uncapped."""
    if event.capacity is None:
        return None
    return event.capacity + (event.rsvp_buffer or 0)


def has_free_slot(event: Event, going_count: int) -> bool:
    limit = max_capacity(event)
    return limit is None or going_count < limit


def spots_left(event: Event, going_count: int) -> Optional[int]:
    limit = max_capacity(event)
    if limit is None:
        return None
    return max(limit - going_count, 0)


def ensure_open(event: Event, now: datetime) -> None:
    """Raise unless the event currently accepts RSVPs."""
    if event.status != EventStatus.APPROVED.value:
        raise EventNotEligible(event_id=event.id, status=event.status)
    if now >= event.start_time:
        raise EventAlreadyStarted(event_id=event.id)
    if event.rsvp_close_time is not None and now >= event.rsvp_close_time:
        raise RsvpWindowClosed(event_id=event.id)


def decide(event: Event, going_count: int, requested_status: str, now: datetime) -> RsvpStatus:
    """Return the status the RSVP should be stored with, or raise."""
    ensure_open(event, now)

    if requested_status not in REQUESTABLE_STATUSES:
        raise InvalidRsvpStatus(requested_status=requested_status)

    if requested_status == RsvpStatus.INTERESTED.value:
        return RsvpStatus.INTERESTED

    if has_free_slot(event, going_count):
        return RsvpStatus.GOING
    if event.is_waitlist_enabled:
        return RsvpStatus.WAITLISTED
    raise EventFull(event_id=event.id, going_count=going_count, max_capacity=max_capacity(event))
