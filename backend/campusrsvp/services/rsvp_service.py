"""
RSVP lifecycle for one (user, event) pair.

    none ──rsvp()──> going | interested | waitlisted ──cancel_rsvp()──> cancelled
                                                                          │
    cancelled ──rsvp()──> (same row revived, capacity re-evaluated) <─────┘

going <-> waitlisted only happens at creation time or through promotion;
users never move between them directly. Interested and going are mutually
exclusive because a user holds at most one active RSVP per event: switching
means cancelling first.
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from campusrsvp.core.exceptions import (
    DuplicateRsvp,
    EventNotFound,
    RsvpError,
    RsvpNotFound,
    StoreConflict,
)
from campusrsvp.core.logging import get_logger
from campusrsvp.core.metrics import (
    promotion_failures,
    record_cancellation,
    record_rsvp_outcome,
    rsvp_latency,
)
from campusrsvp.models.rsvp import Rsvp, RsvpStatus
from campusrsvp.services import capacity_policy
from campusrsvp.services.rsvp_store import RsvpStore
from campusrsvp.services.waitlist_service import PromotionResult, WaitlistPromoter

logger = get_logger(__name__)


@dataclass
class CancellationResult:
    rsvp_id: int
    event_id: int
    prior_status: str
    cancelled_at: datetime
    promotion: Optional[PromotionResult] = None


class RsvpStateMachine:
    def __init__(self, store: RsvpStore, promoter: Optional[WaitlistPromoter] = None):
        self.store = store
        self.promoter = promoter or WaitlistPromoter(store)

    async def rsvp(
        self,
        user_id: str,
        event_id: int,
        requested_status: str,
        now: Optional[datetime] = None,
    ) -> Rsvp:
        now = now or datetime.now(timezone.utc)
        start = time.perf_counter()
        try:
            rsvp = await self._rsvp(user_id, event_id, requested_status, now)
        except RsvpError as exc:
            record_rsvp_outcome(exc.code)
            logger.warning(
                "rsvp_rejected",
                user_id=user_id,
                event_id=event_id,
                requested=requested_status,
                reason=exc.code,
            )
            raise
        finally:
            rsvp_latency.observe(time.perf_counter() - start)

        record_rsvp_outcome(rsvp.status)
        logger.info(
            "rsvp_recorded",
            rsvp_id=rsvp.id,
            user_id=user_id,
            event_id=event_id,
            requested=requested_status,
            status=rsvp.status,
            waitlist_position=rsvp.waitlist_position,
        )
        return rsvp

    async def _rsvp(self, user_id: str, event_id: int, requested_status: str, now: datetime) -> Rsvp:
        event = await self.store.get_event(event_id)
        if event is None:
            raise EventNotFound(event_id=event_id)
        capacity_policy.ensure_open(event, now)

        if await self.store.get_active_rsvp(user_id, event_id) is not None:
            raise DuplicateRsvp(user_id=user_id, event_id=event_id)
        # A cancelled row for the pair is revived rather than duplicated
        existing = await self.store.get_latest_rsvp(user_id, event_id)

        going_count = await self.store.count_rsvps(event_id, RsvpStatus.GOING)
        outcome = capacity_policy.decide(event, going_count, requested_status, now)

        waitlist_position = None
        if outcome == RsvpStatus.WAITLISTED:
            waitlist_position = await self.store.count_rsvps(event_id, RsvpStatus.WAITLISTED) + 1

        if existing is None:
            return await self.store.insert_rsvp(user_id, event_id, outcome, now, waitlist_position)

        revived = await self.store.revive_rsvp(existing, outcome, now, waitlist_position)
        if not revived:
            raise StoreConflict(rsvp_id=existing.id)
        return existing

    async def cancel_rsvp(
        self,
        user_id: str,
        event_id: int,
        now: Optional[datetime] = None,
    ) -> CancellationResult:
        now = now or datetime.now(timezone.utc)

        rsvp = await self.store.get_active_rsvp(user_id, event_id)
        if rsvp is None:
            raise RsvpNotFound(user_id=user_id, event_id=event_id)
        prior_status = RsvpStatus(rsvp.status)

        cancelled = await self.store.update_rsvp_status(
            rsvp.id,
            prior_status,
            RsvpStatus.CANCELLED,
            cancelled_at=now,
            waitlist_position=None,
            promotion_expires_at=None,
        )
        if not cancelled:
            # Promoted or cancelled between our read and write
            raise StoreConflict(rsvp_id=rsvp.id)
        await self.store.commit()

        record_cancellation(prior_status.value)
        logger.info(
            "rsvp_cancelled",
            rsvp_id=rsvp.id,
            user_id=user_id,
            event_id=event_id,
            prior_status=prior_status.value,
        )

        result = CancellationResult(
            rsvp_id=rsvp.id,
            event_id=event_id,
            prior_status=prior_status.value,
            cancelled_at=now,
        )
        if prior_status == RsvpStatus.GOING:
            result.promotion = await self._promote_after_cancel(event_id, now)
        elif prior_status == RsvpStatus.WAITLISTED:
            await self._close_waitlist_gap(event_id)
        return result

    async def get_rsvp(self, user_id: str, event_id: int) -> Rsvp:
        rsvp = await self.store.get_active_rsvp(user_id, event_id)
        if rsvp is None:
            raise RsvpNotFound(user_id=user_id, event_id=event_id)
        return rsvp

    async def list_user_rsvps(self, user_id: str) -> list[Rsvp]:
        return await self.store.list_user_rsvps(user_id)

    async def _promote_after_cancel(self, event_id: int, now: datetime) -> Optional[PromotionResult]:
        # The cancellation is already committed; nothing below may undo it
        try:
            return await self.promoter.promote_next(event_id, now, trigger="cancellation")
        except SQLAlchemyError:
            await self.store.rollback()
            promotion_failures.inc()
            logger.exception("waitlist_promotion_failed", event_id=event_id)
            return None

    async def _close_waitlist_gap(self, event_id: int) -> None:
        try:
            await self.store.renumber_waitlist(event_id)
            await self.store.commit()
        except SQLAlchemyError:
            await self.store.rollback()
            logger.exception("waitlist_renumber_failed", event_id=event_id)
