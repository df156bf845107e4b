"""
Event model. The RSVP core only reads it.

Key design decisions:
- `capacity` NULL means unlimited; `rsvp_buffer` adds overbooking slots on top
- No denormalised seat counter: RSVP decisions recount `going` rows every time
- Index on (status, start_time) serves the "approved upcoming events" listing
"""

import enum

from sqlalchemy import Boolean, CheckConstraint, Column, Index, Integer, String
from sqlalchemy.orm import relationship

from campusrsvp.db.base import Base, TimestampMixin, UtcDateTime


class EventStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(String(2000), nullable=True)
    location = Column(String(255), nullable=True)
    start_time = Column(UtcDateTime, nullable=False)
    end_time = Column(UtcDateTime, nullable=False)

    capacity = Column(Integer, nullable=True)
    rsvp_buffer = Column(Integer, nullable=False, default=0)
    is_waitlist_enabled = Column(Boolean, nullable=False, default=False)
    rsvp_close_time = Column(UtcDateTime, nullable=True)

    status = Column(String(20), nullable=False, default=EventStatus.PENDING_APPROVAL.value)
    created_by = Column(String(64), nullable=False)
    approved_at = Column(UtcDateTime, nullable=True)
    approved_by = Column(String(64), nullable=True)

    rsvps = relationship("Rsvp", back_populates="event", lazy="noload")

    __table_args__ = (
        CheckConstraint("capacity IS NULL OR capacity > 0", name="check_event_capacity_positive"),
        CheckConstraint("rsvp_buffer >= 0", name="check_event_rsvp_buffer_non_negative"),
        CheckConstraint("end_time > start_time", name="check_event_end_after_start"),
        CheckConstraint(
            "status IN ('draft', 'pending_approval', 'approved', 'cancelled', 'completed', 'archived')",
            name="check_event_status",
        ),
        Index("ix_events_status_start_time", "status", "start_time"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, status={self.status}, capacity={self.capacity})>"
