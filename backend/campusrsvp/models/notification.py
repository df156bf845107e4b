"""
In-app notification rows. Delivery (push, email) is someone else's job;
this table records that a user should be told something.
"""

from sqlalchemy import Boolean, Column, Index, Integer, String

from campusrsvp.db.base import Base, TimestampMixin


class NotificationType:
    WAITLIST_PROMOTION = "waitlist_promotion"


class Notification(Base, TimestampMixin):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    body = Column(String(1000), nullable=True)
    entity_type = Column(String(50), nullable=True)
    entity_id = Column(String(64), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_notifications_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, user={self.user_id}, type={self.type})>"
