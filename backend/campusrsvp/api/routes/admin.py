"""
Moderator endpoints: approve submitted events and trigger a waitlist sweep.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from campusrsvp.api.deps import get_promoter
from campusrsvp.core.security import CurrentUser, get_current_admin
from campusrsvp.db.session import get_db
from campusrsvp.schemas.event import EventResponse
from campusrsvp.schemas.rsvp import WaitlistSweepResponse
from campusrsvp.services.cache_service import invalidate_event_cache
from campusrsvp.services.event_service import approve_event, to_response
from campusrsvp.services.waitlist_service import WaitlistPromoter

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post("/events/{event_id}/approve", response_model=EventResponse)
async def approve_event_endpoint(
    event_id: int,
    admin: CurrentUser = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    event = await approve_event(db, event_id, admin.id)
    response = await to_response(db, event)
    await invalidate_event_cache()
    return response


@router.post("/waitlist/sweep", response_model=WaitlistSweepResponse)
async def sweep_waitlists(
    admin: CurrentUser = Depends(get_current_admin),
    promoter: WaitlistPromoter = Depends(get_promoter),
):
    """
    Renumber every waitlist and promote into any free slots. The scheduled
    `campusrsvp-sweep` job runs the same pass.
    """
    summary = await promoter.sweep()
    if summary.promotions:
        await invalidate_event_cache()
    return WaitlistSweepResponse(
        events_processed=summary.events_processed,
        promotions=summary.promotions,
    )
