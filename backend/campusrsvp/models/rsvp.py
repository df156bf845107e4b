"""
RSVP model: one row per (user, event) slot.

Key design decisions:
- Cancelling keeps the row; re-RSVPing revives it instead of inserting again
- A partial unique index allows only one non-cancelled RSVP per user per event,
  so the invariant holds even when two requests race past the application check
- `rsvp_time` orders the waitlist and promotions (FIFO)
- `waitlist_position` is set exactly when status is 'waitlisted'
"""

import enum

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import relationship

from campusrsvp.db.base import Base, TimestampMixin, UtcDateTime


class RsvpStatus(str, enum.Enum):
    GOING = "going"
    INTERESTED = "interested"
    WAITLISTED = "waitlisted"
    CANCELLED = "cancelled"


ACTIVE_RSVP_CLAUSE = text("status <> 'cancelled'")


class Rsvp(Base, TimestampMixin):
    __tablename__ = "rsvps"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False)
    rsvp_time = Column(UtcDateTime, nullable=False)
    cancelled_at = Column(UtcDateTime, nullable=True)
    waitlist_position = Column(Integer, nullable=True)
    # Reserved for a time-boxed acceptance window; always NULL for now
    promotion_expires_at = Column(UtcDateTime, nullable=True)

    event = relationship("Event", back_populates="rsvps", lazy="noload")

    __table_args__ = (
        Index(
            "uq_rsvps_active_user_event",
            "user_id",
            "event_id",
            unique=True,
            postgresql_where=ACTIVE_RSVP_CLAUSE,
            sqlite_where=ACTIVE_RSVP_CLAUSE,
        ),
        # Serves status counts and FIFO waitlist scans per event
        Index("ix_rsvps_event_status_time", "event_id", "status", "rsvp_time"),
        CheckConstraint(
            "status IN ('going', 'interested', 'waitlisted', 'cancelled')",
            name="check_rsvp_status",
        ),
        CheckConstraint(
            "(status = 'waitlisted') = (waitlist_position IS NOT NULL)",
            name="check_rsvp_waitlist_position",
        ),
        CheckConstraint(
            "waitlist_position IS NULL OR waitlist_position > 0",
            name="check_rsvp_waitlist_position_positive",
        ),
    )

    def __repr__(self) -> str:
        return f"<Rsvp(id={self.id}, user={self.user_id}, event={self.event_id}, status={self.status})>"
