from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from campusrsvp.db.session import get_db
from campusrsvp.services.rsvp_service import RsvpStateMachine
from campusrsvp.services.rsvp_store import RsvpStore
from campusrsvp.services.waitlist_service import WaitlistPromoter


def get_store(db: AsyncSession = Depends(get_db)) -> RsvpStore:
    return RsvpStore(db)


def get_promoter(store: RsvpStore = Depends(get_store)) -> WaitlistPromoter:
    return WaitlistPromoter(store)


def get_state_machine(
    store: RsvpStore = Depends(get_store),
    promoter: WaitlistPromoter = Depends(get_promoter),
) -> RsvpStateMachine:
    return RsvpStateMachine(store, promoter)
