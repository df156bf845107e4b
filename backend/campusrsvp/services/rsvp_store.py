"""
RSVP store: the persistence contract the RSVP core depends on.

CONCURRENCY STRATEGY: recount + compare-and-swap
=================================================

Problem:
  RSVP decisions are check-then-act. Two requests for the last slot both
  read going=N-1 and both write 'going'. Two promoters both pick the head
  of the waitlist and both promote it.

Approach:
  - Never keep a running counter. `count_rsvps` recounts from the rsvps
    table every time a decision is made.
  - Status transitions are conditional:
      UPDATE rsvps SET status = :to, ... WHERE id = :id AND status = :from
    rowcount == 0 means somebody else moved the row first, and the caller
    decides whether that is an error (revival) or a no-op (promotion).
  - The one-active-RSVP-per-user rule is a partial unique index, so a racing
    INSERT fails in the database rather than slipping past a SELECT.

  Two `rsvp()` calls can still both observe a free slot and both land as
  'going'; the rsvp_buffer absorbs that transient overshoot.
"""

from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import distinct, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from campusrsvp.core.exceptions import DuplicateRsvp
from campusrsvp.core.logging import get_logger
from campusrsvp.models.event import Event
from campusrsvp.models.notification import Notification
from campusrsvp.models.rsvp import Rsvp, RsvpStatus

logger = get_logger(__name__)


class RsvpStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    # Reads

    async def get_event(self, event_id: int) -> Optional[Event]:
        result = await self.db.execute(
            select(Event).where(Event.id == event_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_active_rsvp(self, user_id: str, event_id: int) -> Optional[Rsvp]:
        result = await self.db.execute(
            select(Rsvp)
            .where(
                Rsvp.user_id == user_id,
                Rsvp.event_id == event_id,
                Rsvp.status != RsvpStatus.CANCELLED.value,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_latest_rsvp(self, user_id: str, event_id: int) -> Optional[Rsvp]:
        """Most recent row for the pair, cancelled or not."""
        result = await self.db.execute(
            select(Rsvp)
            .where(Rsvp.user_id == user_id, Rsvp.event_id == event_id)
            .order_by(Rsvp.id.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def count_rsvps(self, event_id: int, status: RsvpStatus) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(Rsvp)
            .where(Rsvp.event_id == event_id, Rsvp.status == status.value)
        )
        return result.scalar_one()

    async def count_by_status(self, event_ids: Sequence[int]) -> dict[int, dict[str, int]]:
        """{event_id: {status: count}} for a page of events, in one query."""
        if not event_ids:
            return {}
        result = await self.db.execute(
            select(Rsvp.event_id, Rsvp.status, func.count())
            .where(Rsvp.event_id.in_(event_ids))
            .group_by(Rsvp.event_id, Rsvp.status)
        )
        counts: dict[int, dict[str, int]] = {event_id: {} for event_id in event_ids}
        for event_id, status, count in result.all():
            counts[event_id][status] = count
        return counts

    async def list_rsvps(self, event_id: int, status: RsvpStatus) -> list[Rsvp]:
        """RSVPs in one status, FIFO by rsvp_time (id breaks ties)."""
        result = await self.db.execute(
            select(Rsvp)
            .where(Rsvp.event_id == event_id, Rsvp.status == status.value)
            .order_by(Rsvp.rsvp_time.asc(), Rsvp.id.asc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_user_rsvps(self, user_id: str) -> list[Rsvp]:
        result = await self.db.execute(
            select(Rsvp)
            .where(Rsvp.user_id == user_id)
            .order_by(Rsvp.rsvp_time.desc())
        )
        return list(result.scalars().all())

    async def list_waitlisted_event_ids(self) -> list[int]:
        result = await self.db.execute(
            select(distinct(Rsvp.event_id))
            .where(Rsvp.status == RsvpStatus.WAITLISTED.value)
            .order_by(Rsvp.event_id)
        )
        return list(result.scalars().all())

    # Writes

    async def insert_rsvp(
        self,
        user_id: str,
        event_id: int,
        status: RsvpStatus,
        rsvp_time: datetime,
        waitlist_position: Optional[int],
    ) -> Rsvp:
        rsvp = Rsvp(
            user_id=user_id,
            event_id=event_id,
            status=status.value,
            rsvp_time=rsvp_time,
            cancelled_at=None,
            waitlist_position=waitlist_position,
            promotion_expires_at=None,
        )
        self.db.add(rsvp)
        try:
            await self.db.flush()
        except IntegrityError:
            # Partial unique index: a concurrent request created the active row
            await self.db.rollback()
            logger.warning("rsvp_insert_conflict", user_id=user_id, event_id=event_id)
            raise DuplicateRsvp(user_id=user_id, event_id=event_id)
        await self.db.refresh(rsvp)
        return rsvp

    async def update_rsvp_status(
        self,
        rsvp_id: int,
        from_status: RsvpStatus,
        to_status: RsvpStatus,
        **fields,
    ) -> bool:
        """
        Move an RSVP from `from_status` to `to_status`, setting `fields` too.
        Returns False (and writes nothing) if the row is no longer in `from_status`.
        """
        result = await self.db.execute(
            update(Rsvp)
            .where(Rsvp.id == rsvp_id, Rsvp.status == from_status.value)
            .values(status=to_status.value, **fields)
        )
        return result.rowcount == 1

    async def revive_rsvp(
        self,
        rsvp: Rsvp,
        status: RsvpStatus,
        rsvp_time: datetime,
        waitlist_position: Optional[int],
    ) -> bool:
        """Reuse a cancelled row for a new RSVP. False if it is no longer cancelled."""
        try:
            revived = await self.update_rsvp_status(
                rsvp.id,
                RsvpStatus.CANCELLED,
                status,
                rsvp_time=rsvp_time,
                cancelled_at=None,
                waitlist_position=waitlist_position,
                promotion_expires_at=None,
            )
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateRsvp(user_id=rsvp.user_id, event_id=rsvp.event_id)
        if revived:
            await self.db.refresh(rsvp)
        return revived

    async def set_waitlist_position(self, rsvp_id: int, position: int) -> None:
        await self.db.execute(
            update(Rsvp)
            .where(Rsvp.id == rsvp_id, Rsvp.status == RsvpStatus.WAITLISTED.value)
            .values(waitlist_position=position)
        )

    async def renumber_waitlist(self, event_id: int) -> int:
        """
        Rewrite positions as 1..N in rsvp_time order. Only rows whose position
        is wrong are touched. Returns the waitlist length.
        """
        waitlisted = await self.list_rsvps(event_id, RsvpStatus.WAITLISTED)
        for position, rsvp in enumerate(waitlisted, start=1):
            if rsvp.waitlist_position != position:
                await self.set_waitlist_position(rsvp.id, position)
        return len(waitlisted)

    async def create_notification(
        self,
        user_id: str,
        type: str,
        title: str,
        body: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            body=body,
            entity_type=entity_type,
            entity_id=entity_id,
            is_read=False,
        )
        self.db.add(notification)
        await self.db.flush()
        return notification

    async def list_notifications(self, user_id: str, limit: int = 50) -> list[Notification]:
        result = await self.db.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    # Transaction control

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()
