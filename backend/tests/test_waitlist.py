"""
Service-level tests for the state machine and waitlist promotion,
driven with explicit timestamps so FIFO order is deterministic.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import async_sessionmaker

from campusrsvp.core.exceptions import DuplicateRsvp, RsvpNotFound
from campusrsvp.models.rsvp import RsvpStatus
from campusrsvp.workers import waitlist_sweep

T0 = datetime.now(timezone.utc).replace(microsecond=0)


def at(seconds: int) -> datetime:
    return T0 + timedelta(seconds=seconds)


async def waitlist_positions(store, event_id: int) -> list[tuple[str, int]]:
    return [(r.user_id, r.waitlist_position) for r in await store.list_rsvps(event_id, RsvpStatus.WAITLISTED)]


@pytest.mark.asyncio
async def test_waitlist_positions_follow_rsvp_time(machine, store, make_event):
    event = await make_event(capacity=1, is_waitlist_enabled=True)

    await machine.rsvp("u1", event.id, "going", now=at(1))
    for i, user in enumerate(["u2", "u3", "u4"], start=2):
        rsvp = await machine.rsvp(user, event.id, "going", now=at(i))
        assert rsvp.status == "waitlisted"
        assert rsvp.waitlist_position == i - 1

    assert await waitlist_positions(store, event.id) == [("u2", 1), ("u3", 2), ("u4", 3)]


@pytest.mark.asyncio
async def test_cancel_going_promotes_earliest_waitlisted(machine, store, make_event):
    event = await make_event(capacity=1, is_waitlist_enabled=True)
    await machine.rsvp("u1", event.id, "going", now=at(1))
    await machine.rsvp("u2", event.id, "going", now=at(2))
    await machine.rsvp("u3", event.id, "going", now=at(3))

    result = await machine.cancel_rsvp("u1", event.id, now=at(10))

    assert result.prior_status == "going"
    assert result.promotion is not None
    assert result.promotion.user_id == "u2"
    assert (await store.get_active_rsvp("u2", event.id)).status == "going"
    assert await waitlist_positions(store, event.id) == [("u3", 1)]
    assert await store.count_rsvps(event.id, RsvpStatus.GOING) == 1


@pytest.mark.asyncio
async def test_cancel_interested_never_promotes(machine, store, make_event):
    event = await make_event(capacity=1, is_waitlist_enabled=True)
    await machine.rsvp("u1", event.id, "going", now=at(1))
    await machine.rsvp("u2", event.id, "going", now=at(2))
    await machine.rsvp("u3", event.id, "interested", now=at(3))

    result = await machine.cancel_rsvp("u3", event.id, now=at(4))

    assert result.promotion is None
    assert (await store.get_active_rsvp("u2", event.id)).status == "waitlisted"


@pytest.mark.asyncio
async def test_promote_next_noop_without_free_slot(promoter, machine, make_event):
    event = await make_event(capacity=1, is_waitlist_enabled=True)
    await machine.rsvp("u1", event.id, "going", now=at(1))
    await machine.rsvp("u2", event.id, "going", now=at(2))

    assert await promoter.promote_next(event.id, now=at(3)) is None


@pytest.mark.asyncio
async def test_promote_next_noop_with_empty_waitlist(promoter, make_event):
    event = await make_event(capacity=5)
    assert await promoter.promote_next(event.id, now=at(1)) is None


@pytest.mark.asyncio
async def test_promotion_lost_race_is_silent(promoter, machine, store, make_event, monkeypatch):
    """If the head of the waitlist moved before our conditional write, nothing changes."""
    event = await make_event(capacity=1, is_waitlist_enabled=True)
    await machine.rsvp("u1", event.id, "going", now=at(1))
    await machine.rsvp("u2", event.id, "going", now=at(2))
    await machine.rsvp("u3", event.id, "going", now=at(3))
    # Free the slot without triggering promotion
    u1 = await store.get_active_rsvp("u1", event.id)
    await store.update_rsvp_status(u1.id, RsvpStatus.GOING, RsvpStatus.CANCELLED, cancelled_at=at(4))

    real_list = store.list_rsvps

    async def list_then_lose_race(event_id, status):
        rows = await real_list(event_id, status)
        if status == RsvpStatus.WAITLISTED and rows:
            # Someone else cancels the head between our read and our write
            await store.update_rsvp_status(
                rows[0].id, RsvpStatus.WAITLISTED, RsvpStatus.CANCELLED,
                cancelled_at=at(5), waitlist_position=None,
            )
        return rows

    monkeypatch.setattr(store, "list_rsvps", list_then_lose_race)
    assert await promoter.promote_next(event.id, now=at(6)) is None
    monkeypatch.undo()

    assert await store.count_rsvps(event.id, RsvpStatus.GOING) == 0
    assert (await store.get_active_rsvp("u3", event.id)).status == "waitlisted"


@pytest.mark.asyncio
async def test_promotion_failure_does_not_fail_cancellation(machine, promoter, store, make_event, monkeypatch):
    event = await make_event(capacity=1, is_waitlist_enabled=True)
    await machine.rsvp("u1", event.id, "going", now=at(1))
    await machine.rsvp("u2", event.id, "going", now=at(2))

    async def broken_promote(*args, **kwargs):
        raise OperationalError("UPDATE rsvps", {}, Exception("connection reset"))

    monkeypatch.setattr(promoter, "promote_next", broken_promote)
    result = await machine.cancel_rsvp("u1", event.id, now=at(3))

    assert result.promotion is None
    assert await store.get_active_rsvp("u1", event.id) is None
    latest = await store.get_latest_rsvp("u1", event.id)
    assert latest.status == "cancelled"
    assert latest.cancelled_at is not None


@pytest.mark.asyncio
async def test_notification_failure_keeps_promotion(machine, store, make_event, monkeypatch):
    event = await make_event(capacity=1, is_waitlist_enabled=True)
    await machine.rsvp("u1", event.id, "going", now=at(1))
    await machine.rsvp("u2", event.id, "going", now=at(2))

    async def broken_notification(**kwargs):
        raise OperationalError("INSERT INTO notifications", {}, Exception("disk full"))

    monkeypatch.setattr(store, "create_notification", broken_notification)
    result = await machine.cancel_rsvp("u1", event.id, now=at(3))

    assert result.promotion is not None
    assert (await store.get_active_rsvp("u2", event.id)).status == "going"
    assert await store.list_notifications("u2") == []


@pytest.mark.asyncio
async def test_sweep_heals_gaps_and_fills_free_slots(promoter, machine, store, make_event):
    event = await make_event(capacity=2, is_waitlist_enabled=True)
    for i, user in enumerate(["u1", "u2", "u3", "u4", "u5"], start=1):
        await machine.rsvp(user, event.id, "going", now=at(i))

    # Simulate a crash: u1 cancelled without promotion, and a stale gap in positions
    u1 = await store.get_active_rsvp("u1", event.id)
    await store.update_rsvp_status(u1.id, RsvpStatus.GOING, RsvpStatus.CANCELLED, cancelled_at=at(6))
    u4 = await store.get_active_rsvp("u4", event.id)
    await store.set_waitlist_position(u4.id, 7)
    await store.commit()

    summary = await promoter.sweep(now=at(10))

    assert summary.events_processed == 1
    assert summary.promotions == 1
    assert (await store.get_active_rsvp("u3", event.id)).status == "going"
    assert await waitlist_positions(store, event.id) == [("u4", 1), ("u5", 2)]


@pytest.mark.asyncio
async def test_sweep_ignores_events_without_waitlist(promoter, machine, make_event):
    event = await make_event(capacity=5)
    await machine.rsvp("u1", event.id, "going", now=at(1))

    summary = await promoter.sweep(now=at(2))
    assert summary.events_processed == 0
    assert summary.promotions == 0


@pytest.mark.asyncio
async def test_capacity_never_exceeded_across_operations(machine, store, make_event):
    """capacity + buffer holds and the waitlist stays 1..N after every step."""
    event = await make_event(capacity=2, rsvp_buffer=1, is_waitlist_enabled=True)
    users = [f"u{i}" for i in range(1, 9)]
    clock = 0

    async def check():
        assert await store.count_rsvps(event.id, RsvpStatus.GOING) <= 3
        positions = [p for _, p in await waitlist_positions(store, event.id)]
        assert positions == list(range(1, len(positions) + 1))

    for user in users:
        clock += 1
        await machine.rsvp(user, event.id, "going", now=at(clock))
        await check()

    for user in ["u2", "u5", "u1", "u7"]:
        clock += 1
        await machine.cancel_rsvp(user, event.id, now=at(clock))
        await check()

    for user in ["u2", "u5"]:
        clock += 1
        await machine.rsvp(user, event.id, "going", now=at(clock))
        await check()

    assert await store.count_rsvps(event.id, RsvpStatus.GOING) == 3


@pytest.mark.asyncio
async def test_duplicate_and_missing_rsvp_errors(machine, make_event):
    event = await make_event(capacity=5)
    await machine.rsvp("u1", event.id, "interested", now=at(1))

    with pytest.raises(DuplicateRsvp):
        await machine.rsvp("u1", event.id, "going", now=at(2))

    await machine.cancel_rsvp("u1", event.id, now=at(3))
    with pytest.raises(RsvpNotFound):
        await machine.cancel_rsvp("u1", event.id, now=at(4))


@pytest.mark.asyncio
async def test_partial_unique_index_rejects_second_active_row(store, make_event):
    """The database, not just the state machine, enforces one active RSVP."""
    event = await make_event(capacity=5)
    await store.insert_rsvp("u1", event.id, RsvpStatus.GOING, at(1), None)

    with pytest.raises(DuplicateRsvp):
        await store.insert_rsvp("u1", event.id, RsvpStatus.INTERESTED, at(2), None)


@pytest.mark.asyncio
async def test_sweep_worker_runs_in_its_own_session(db_session, machine, store, make_event, monkeypatch):
    event = await make_event(capacity=1, is_waitlist_enabled=True)
    await machine.rsvp("u1", event.id, "going", now=at(1))
    await machine.rsvp("u2", event.id, "going", now=at(2))
    u1 = await store.get_active_rsvp("u1", event.id)
    await store.update_rsvp_status(u1.id, RsvpStatus.GOING, RsvpStatus.CANCELLED, cancelled_at=at(3))
    await store.commit()

    monkeypatch.setattr(
        waitlist_sweep, "SessionLocal", async_sessionmaker(db_session.bind, expire_on_commit=False)
    )
    summary = await waitlist_sweep.run_once()

    assert summary.promotions == 1
    assert (await store.get_active_rsvp("u2", event.id)).status == "going"
