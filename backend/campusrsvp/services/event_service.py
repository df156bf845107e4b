"""
Event catalogue: submission, moderation and the read side.

Attendee-facing reads only ever see approved events, and every view carries
going / interested / waitlist counts recounted from the rsvps table.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from campusrsvp.core.logging import get_logger
from campusrsvp.models.event import Event, EventStatus
from campusrsvp.models.rsvp import RsvpStatus
from campusrsvp.schemas.event import EventCreate, EventListResponse, EventResponse
from campusrsvp.services import cache_service
from campusrsvp.services.capacity_policy import spots_left
from campusrsvp.services.rsvp_store import RsvpStore

logger = get_logger(__name__)

APPROVABLE = (EventStatus.PENDING_APPROVAL.value, EventStatus.DRAFT.value)


async def create_event(db: AsyncSession, event_data: EventCreate, created_by: str) -> Event:
    """Store a submission as pending_approval; it is hidden until approved."""
    if event_data.start_time <= datetime.now(timezone.utc):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Event must start in the future")

    event = Event(
        **event_data.model_dump(),
        status=EventStatus.PENDING_APPROVAL.value,
        created_by=created_by,
    )
    db.add(event)
    await db.flush()
    await db.refresh(event)

    logger.info("event_submitted", event_id=event.id, created_by=created_by, capacity=event.capacity)
    return event


async def approve_event(db: AsyncSession, event_id: int, admin_id: str) -> Event:
    event = await _load(db, event_id)
    if event is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"Event {event_id} not found")
    if event.status not in APPROVABLE:
        raise HTTPException(status.HTTP_409_CONFLICT, f"Event is already {event.status}")

    event.status = EventStatus.APPROVED.value
    event.approved_at = datetime.now(timezone.utc)
    event.approved_by = admin_id
    await db.flush()
    await db.refresh(event)

    logger.info("event_approved", event_id=event.id, approved_by=admin_id)
    return event


async def get_event(db: AsyncSession, event_id: int) -> Event:
    """An approved event; anything else is reported as missing."""
    event = await _load(db, event_id)
    if event is None or event.status != EventStatus.APPROVED.value:
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"Event {event_id} not found")
    return event


async def list_events(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    upcoming_only: bool = True,
) -> tuple[list[Event], int]:
    """Approved events, soonest first. Served by ix_events_status_start_time."""
    filters = [Event.status == EventStatus.APPROVED.value]
    if upcoming_only:
        filters.append(Event.start_time >= datetime.now(timezone.utc))

    total = (await db.execute(select(func.count(Event.id)).where(*filters))).scalar_one()
    result = await db.execute(
        select(Event)
        .where(*filters)
        .order_by(Event.start_time, Event.id)
        .limit(page_size)
        .offset((page - 1) * page_size)
    )
    return list(result.scalars()), total


async def list_event_page(
    db: AsyncSession,
    page: int,
    page_size: int,
    upcoming_only: bool,
) -> EventListResponse:
    """One listing page, from the cache when it holds the current generation."""
    cached = await cache_service.get_cached_events(page, page_size, upcoming_only)
    if cached is not None:
        return EventListResponse(**cached, cached=True)

    events, total = await list_events(db, page, page_size, upcoming_only)
    listing = EventListResponse(
        events=await to_responses(db, events),
        total=total,
        page=page,
        page_size=page_size,
    )
    await cache_service.set_cached_events(
        page, page_size, upcoming_only, listing.model_dump(mode="json", exclude={"cached"})
    )
    return listing


async def to_responses(db: AsyncSession, events: list[Event]) -> list[EventResponse]:
    """Attach going / interested / waitlist counts, recounted for this response."""
    counts = await RsvpStore(db).count_by_status([event.id for event in events])
    responses = []
    for event in events:
        by_status = counts.get(event.id, {})
        going = by_status.get(RsvpStatus.GOING.value, 0)
        response = EventResponse.model_validate(event)
        response.going_count = going
        response.interested_count = by_status.get(RsvpStatus.INTERESTED.value, 0)
        response.waitlist_count = by_status.get(RsvpStatus.WAITLISTED.value, 0)
        response.spots_left = spots_left(event, going)
        responses.append(response)
    return responses


async def to_response(db: AsyncSession, event: Event) -> EventResponse:
    return (await to_responses(db, [event]))[0]


async def _load(db: AsyncSession, event_id: int) -> Optional[Event]:
    return await db.get(Event, event_id)
