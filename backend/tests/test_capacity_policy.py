"""
Tests for the pure capacity policy. No database involved.
"""

from datetime import datetime, timedelta, timezone

import pytest

from campusrsvp.core.exceptions import (
    EventAlreadyStarted,
    EventFull,
    EventNotEligible,
    InvalidRsvpStatus,
    RsvpWindowClosed,
)
from campusrsvp.models.event import Event
from campusrsvp.models.rsvp import RsvpStatus
from campusrsvp.services.capacity_policy import decide, has_free_slot, max_capacity, spots_left

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


def build_event(**overrides) -> Event:
    values = dict(
        id=1,
        title="Chess Club Open Night",
        start_time=NOW + timedelta(days=1),
        end_time=NOW + timedelta(days=1, hours=3),
        capacity=10,
        rsvp_buffer=0,
        is_waitlist_enabled=False,
        rsvp_close_time=None,
        status="approved",
        created_by="club-chess",
    )
    values.update(overrides)
    return Event(**values)


def test_max_capacity_includes_buffer():
    assert max_capacity(build_event(capacity=10, rsvp_buffer=3)) == 13


def test_max_capacity_unlimited_when_capacity_null():
    event = build_event(capacity=None, rsvp_buffer=5)
    assert max_capacity(event) is None
    assert has_free_slot(event, 10_000)
    assert spots_left(event, 10_000) is None


def test_spots_left_never_negative():
    assert spots_left(build_event(capacity=2), 5) == 0


def test_going_admitted_below_capacity():
    assert decide(build_event(), 9, "going", NOW) == RsvpStatus.GOING


def test_buffer_slots_admit_going():
    event = build_event(capacity=10, rsvp_buffer=2)
    assert decide(event, 11, "going", NOW) == RsvpStatus.GOING


def test_full_event_waitlists_when_enabled():
    event = build_event(capacity=10, rsvp_buffer=2, is_waitlist_enabled=True)
    assert decide(event, 12, "going", NOW) == RsvpStatus.WAITLISTED


def test_full_event_rejects_without_waitlist():
    with pytest.raises(EventFull):
        decide(build_event(capacity=10), 10, "going", NOW)


def test_interested_ignores_capacity():
    event = build_event(capacity=1, is_waitlist_enabled=False)
    assert decide(event, 50, "interested", NOW) == RsvpStatus.INTERESTED


def test_unapproved_event_not_eligible():
    with pytest.raises(EventNotEligible):
        decide(build_event(status="pending_approval"), 0, "going", NOW)


def test_started_event_rejected():
    event = build_event(start_time=NOW, end_time=NOW + timedelta(hours=1))
    with pytest.raises(EventAlreadyStarted):
        decide(event, 0, "interested", NOW)


def test_closed_rsvp_window_rejected_regardless_of_capacity():
    event = build_event(capacity=None, rsvp_close_time=NOW - timedelta(minutes=1))
    with pytest.raises(RsvpWindowClosed):
        decide(event, 0, "going", NOW)


def test_rsvp_window_closes_at_exact_close_time():
    with pytest.raises(RsvpWindowClosed):
        decide(build_event(rsvp_close_time=NOW), 0, "going", NOW)


@pytest.mark.parametrize("requested", ["waitlisted", "cancelled", "maybe"])
def test_only_going_or_interested_can_be_requested(requested):
    with pytest.raises(InvalidRsvpStatus):
        decide(build_event(), 0, requested, NOW)
