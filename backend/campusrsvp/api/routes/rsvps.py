"""
RSVP endpoints. Capacity and waitlist rules live in RsvpStateMachine;
errors are RsvpError subclasses rendered by the app-level handler.
"""

from fastapi import APIRouter, Depends

from campusrsvp.api.deps import get_state_machine
from campusrsvp.core.security import get_current_user_id
from campusrsvp.schemas.rsvp import RsvpCancelResponse, RsvpCreate, RsvpResponse
from campusrsvp.services.cache_service import invalidate_event_cache
from campusrsvp.services.rsvp_service import RsvpStateMachine

router = APIRouter(tags=["RSVPs"])


@router.post("/events/{event_id}/rsvp", response_model=RsvpResponse)
async def create_rsvp(
    event_id: int,
    rsvp_data: RsvpCreate,
    user_id: str = Depends(get_current_user_id),
    machine: RsvpStateMachine = Depends(get_state_machine),
):
    """
    RSVP to an event as 'going' or 'interested'.

    'going' on a full event lands on the waitlist when the event has one
    (the response carries the position) and fails with event_full otherwise.
    """
    rsvp = await machine.rsvp(user_id, event_id, rsvp_data.status)
    response = RsvpResponse.model_validate(rsvp)
    await invalidate_event_cache()
    return response


@router.delete("/events/{event_id}/rsvp", response_model=RsvpCancelResponse)
async def cancel_rsvp(
    event_id: int,
    user_id: str = Depends(get_current_user_id),
    machine: RsvpStateMachine = Depends(get_state_machine),
):
    """Cancel your RSVP. A freed seat goes to the head of the waitlist."""
    await machine.cancel_rsvp(user_id, event_id)
    await invalidate_event_cache()
    return RsvpCancelResponse(
        message="RSVP cancelled",
        event_id=event_id,
        status="cancelled",
    )


@router.get("/events/{event_id}/rsvp", response_model=RsvpResponse)
async def get_my_rsvp(
    event_id: int,
    user_id: str = Depends(get_current_user_id),
    machine: RsvpStateMachine = Depends(get_state_machine),
):
    """Your active RSVP for the event, including waitlist position."""
    return await machine.get_rsvp(user_id, event_id)


@router.get("/rsvps/me", response_model=list[RsvpResponse])
async def list_my_rsvps(
    user_id: str = Depends(get_current_user_id),
    machine: RsvpStateMachine = Depends(get_state_machine),
):
    """All your RSVPs, newest first, cancelled ones included."""
    return await machine.list_user_rsvps(user_id)
