"""Initial schema: events, rsvps, notifications with indexes and constraints.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Events table
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.String(2000), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=True),
        sa.Column("rsvp_buffer", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_waitlist_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("rsvp_close_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending_approval'")),
        sa.Column("created_by", sa.String(64), nullable=False),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("capacity IS NULL OR capacity > 0", name="check_event_capacity_positive"),
        sa.CheckConstraint("rsvp_buffer >= 0", name="check_event_rsvp_buffer_non_negative"),
        sa.CheckConstraint("end_time > start_time", name="check_event_end_after_start"),
        sa.CheckConstraint(
            "status IN ('draft', 'pending_approval', 'approved', 'cancelled', 'completed', 'archived')",
            name="check_event_status",
        ),
    )
    op.create_index("ix_events_id", "events", ["id"])
    # Public listing: WHERE status = 'approved' AND start_time >= now() ORDER BY start_time
    op.create_index("ix_events_status_start_time", "events", ["status", "start_time"])

    # RSVPs table
    op.create_table(
        "rsvps",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("rsvp_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("waitlist_position", sa.Integer(), nullable=True),
        sa.Column("promotion_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('going', 'interested', 'waitlisted', 'cancelled')",
            name="check_rsvp_status",
        ),
        sa.CheckConstraint(
            "(status = 'waitlisted') = (waitlist_position IS NOT NULL)",
            name="check_rsvp_waitlist_position",
        ),
        sa.CheckConstraint(
            "waitlist_position IS NULL OR waitlist_position > 0",
            name="check_rsvp_waitlist_position_positive",
        ),
    )
    op.create_index("ix_rsvps_id", "rsvps", ["id"])
    op.create_index("ix_rsvps_user_id", "rsvps", ["user_id"])
    op.create_index("ix_rsvps_event_id", "rsvps", ["event_id"])
    # ONE ACTIVE RSVP PER USER PER EVENT: partial unique index.
    # Cancelled rows stay for history and are revived on re-RSVP, so the
    # constraint only covers rows that are not cancelled. Two concurrent
    # first-time RSVPs from the same user: the second INSERT fails here.
    op.create_index(
        "uq_rsvps_active_user_event",
        "rsvps",
        ["user_id", "event_id"],
        unique=True,
        postgresql_where=sa.text("status <> 'cancelled'"),
    )
    # Covers COUNT(*) WHERE event_id = ? AND status = ? (recount on every decision)
    # and the FIFO waitlist scan ORDER BY rsvp_time.
    op.create_index("ix_rsvps_event_status_time", "rsvps", ["event_id", "status", "rsvp_time"])

    # Notifications table
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("body", sa.String(1000), nullable=True),
        sa.Column("entity_type", sa.String(50), nullable=True),
        sa.Column("entity_id", sa.String(64), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_id", "notifications", ["id"])
    op.create_index("ix_notifications_user_created", "notifications", ["user_id", "created_at"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("rsvps")
    op.drop_table("events")
