"""
Event catalogue. The listing may come from the Redis cache; a single event
is always read live.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from campusrsvp.core.security import get_current_user_id
from campusrsvp.db.session import get_db
from campusrsvp.schemas.event import EventCreate, EventListResponse, EventResponse
from campusrsvp.services import event_service

router = APIRouter(prefix="/events", tags=["Events"])


@router.post("/", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def submit_event(
    payload: EventCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Submit an event for moderation. Attendees see it once an admin approves it."""
    event = await event_service.create_event(db, payload, user_id)
    return await event_service.to_response(db, event)


@router.get("/", response_model=EventListResponse)
async def browse_events(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    upcoming_only: bool = Query(True),
    db: AsyncSession = Depends(get_db),
):
    return await event_service.list_event_page(db, page, page_size, upcoming_only)


@router.get("/{event_id}", response_model=EventResponse)
async def read_event(event_id: int, db: AsyncSession = Depends(get_db)):
    """One approved event with live going / waitlist counts and spots left."""
    event = await event_service.get_event(db, event_id)
    return await event_service.to_response(db, event)
