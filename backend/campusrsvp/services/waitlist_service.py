"""
Waitlist promotion.

When a `going` RSVP is cancelled a slot may free up. `promote_next` moves
the head of the waitlist (earliest rsvp_time) to `going`, closes the gap in
the remaining positions and records a "you're in" notification.

Promotion is best-effort:
  - losing the compare-and-swap to another promoter is a silent no-op
  - a crash between promotion and renumbering leaves a gap that the next
    promotion or the periodic sweep closes
  - a notification that cannot be written never undoes the promotion
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from campusrsvp.core.config import get_settings
from campusrsvp.core.logging import get_logger, log_context
from campusrsvp.core.metrics import (
    notification_failures,
    promotion_conflicts,
    record_promotion,
)
from campusrsvp.models.notification import NotificationType
from campusrsvp.models.rsvp import RsvpStatus
from campusrsvp.services.capacity_policy import has_free_slot
from campusrsvp.services.rsvp_store import RsvpStore

logger = get_logger(__name__)
settings = get_settings()


@dataclass(frozen=True)
class PromotionResult:
    """A waitlisted RSVP became `going`. Callers may act on it asynchronously."""

    rsvp_id: int
    user_id: str
    event_id: int
    promoted_at: datetime


@dataclass
class SweepSummary:
    events_processed: int = 0
    promotions: int = 0


class WaitlistPromoter:
    def __init__(self, store: RsvpStore):
        self.store = store

    async def promote_next(
        self,
        event_id: int,
        now: Optional[datetime] = None,
        trigger: str = "cancellation",
    ) -> Optional[PromotionResult]:
        now = now or datetime.now(timezone.utc)

        event = await self.store.get_event(event_id)
        if event is None:
            return None

        going_count = await self.store.count_rsvps(event_id, RsvpStatus.GOING)
        if not has_free_slot(event, going_count):
            return None

        waitlisted = await self.store.list_rsvps(event_id, RsvpStatus.WAITLISTED)
        if not waitlisted:
            return None
        candidate = waitlisted[0]

        promoted = await self.store.update_rsvp_status(
            candidate.id,
            RsvpStatus.WAITLISTED,
            RsvpStatus.GOING,
            waitlist_position=None,
            promotion_expires_at=None,
        )
        if not promoted:
            # Another promoter or a cancellation got there first
            promotion_conflicts.inc()
            logger.info(
                "waitlist_promotion_conflict",
                event_id=event_id,
                rsvp_id=candidate.id,
            )
            return None

        remaining = await self.store.renumber_waitlist(event_id)
        await self.store.commit()

        result = PromotionResult(
            rsvp_id=candidate.id,
            user_id=candidate.user_id,
            event_id=event_id,
            promoted_at=now,
        )
        record_promotion(trigger)
        logger.info(
            "waitlist_promoted",
            event_id=event_id,
            rsvp_id=result.rsvp_id,
            user_id=result.user_id,
            going_count=going_count + 1,
            waitlist_remaining=remaining,
            trigger=trigger,
        )

        await self._notify_promoted(result, event.title)
        return result

    async def sweep(self, now: Optional[datetime] = None) -> SweepSummary:
        """
        Self-healing pass over every event that has a waitlist: close gaps in
        positions, then fill every free slot.
        """
        now = now or datetime.now(timezone.utc)
        summary = SweepSummary()
        budget = settings.WAITLIST_SWEEP_MAX_PROMOTIONS

        for event_id in await self.store.list_waitlisted_event_ids():
            summary.events_processed += 1
            with log_context(event_id=event_id, trigger="sweep"):
                try:
                    await self.store.renumber_waitlist(event_id)
                    await self.store.commit()
                    while summary.promotions < budget:
                        result = await self.promote_next(event_id, now, trigger="sweep")
                        if result is None:
                            break
                        summary.promotions += 1
                except SQLAlchemyError:
                    await self.store.rollback()
                    logger.exception("waitlist_sweep_event_failed")

        logger.info(
            "waitlist_sweep_completed",
            events_processed=summary.events_processed,
            promotions=summary.promotions,
        )
        return summary

    async def _notify_promoted(self, promotion: PromotionResult, event_title: str) -> None:
        try:
            await self.store.create_notification(
                user_id=promotion.user_id,
                type=NotificationType.WAITLIST_PROMOTION,
                title="You're in!",
                body=f'You\'ve been promoted from the waitlist for "{event_title}".',
                entity_type="event",
                entity_id=str(promotion.event_id),
            )
            await self.store.commit()
        except SQLAlchemyError:
            await self.store.rollback()
            notification_failures.labels(type=NotificationType.WAITLIST_PROMOTION).inc()
            logger.exception(
                "promotion_notification_failed",
                event_id=promotion.event_id,
                rsvp_id=promotion.rsvp_id,
                user_id=promotion.user_id,
            )
