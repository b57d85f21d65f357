"""
Tests for the background expiry sweep.
"""

import asyncio
import logging

import pytest

from app.core.exceptions import StoreUnavailable
from app.services import events
from app.services.booking_lifecycle import EXPIRED_REASON
from app.services.expiry_sweeper import ExpirySweeper
from tests.conftest import booking_request, make_booking


@pytest.fixture
def overdue(store, clock, restaurant):
    """A 10:30 booking, seen at 10:46 local: one minute past its deadline."""
    booking = store.seed_booking(make_booking(restaurant, booking_time="10:30"))
    store.restaurants[restaurant.id].find_seat("T1").is_available = False
    clock.advance(minutes=46)
    return booking


@pytest.mark.asyncio
async def test_expires_overdue_booking(sweeper, store, publisher, restaurant, overdue):
    result = await sweeper.run_once()

    assert (result.scanned, result.expired, result.skipped) == (1, 1, 0)
    expired = store.bookings[overdue.id]
    assert expired.status == "cancelled"
    assert expired.cancel_reason == EXPIRED_REASON
    assert expired.cancelled_at is not None
    assert store.restaurants[restaurant.id].find_seat("T1").is_available is True
    assert publisher.names() == [events.BOOKING_CANCELLED]


@pytest.mark.asyncio
async def test_second_tick_is_a_no_op(sweeper, overdue):
    await sweeper.run_once()
    result = await sweeper.run_once()
    assert (result.scanned, result.expired) == (0, 0)


@pytest.mark.asyncio
async def test_leaves_open_windows_alone(sweeper, store, clock, restaurant):
    booking = store.seed_booking(make_booking(restaurant, booking_time="10:30"))
    clock.advance(minutes=44)  # 10:44, deadline 10:45

    result = await sweeper.run_once()

    assert result.expired == 0
    assert store.bookings[booking.id].status == "confirmed"


@pytest.mark.asyncio
async def test_leaves_verified_and_walk_ins_alone(sweeper, store, lifecycle, clock, restaurant, staff):
    walk_in = await lifecycle.create(
        booking_request(restaurant, seat_number="B1", is_walk_in=True, customer_name="Asha"), staff
    )
    arrived = store.seed_booking(make_booking(restaurant, "T2", booking_time="10:30", status="arrived", verified=True))
    clock.advance(hours=3)

    result = await sweeper.run_once()

    assert result.scanned == 0
    assert store.bookings[walk_in.id].status == "arrived"
    assert store.bookings[arrived.id].status == "arrived"


@pytest.mark.asyncio
async def test_batch_size_bounds_a_tick(store, lifecycle, clock, restaurant):
    for seat in ("T1", "T2", "B1"):
        store.seed_booking(make_booking(restaurant, seat, booking_time="10:00"))
    clock.advance(hours=1)
    sweeper = ExpirySweeper(store, lifecycle, clock, batch_size=2)

    first = await sweeper.run_once()
    second = await sweeper.run_once()

    assert (first.expired, second.expired) == (2, 1)
    assert all(b.status == "cancelled" for b in store.bookings.values())


@pytest.mark.asyncio
async def test_skips_bookings_that_moved_on(sweeper, store, overdue, monkeypatch):
    async def lost_race(id, expected, patch):
        return None

    monkeypatch.setattr(store, "conditional_update", lost_race)

    result = await sweeper.run_once()

    assert (result.scanned, result.expired, result.skipped) == (1, 0, 1)


@pytest.mark.asyncio
async def test_overlapping_tick_is_skipped(sweeper, overdue):
    async with sweeper._tick_lock:
        result = await sweeper.run_once()

    assert result.ran is False
    assert result.expired == 0


@pytest.mark.asyncio
async def test_store_outage_surfaces_from_a_single_tick(sweeper, store, overdue):
    store.unavailable = True
    with pytest.raises(StoreUnavailable):
        await sweeper.run_once()


@pytest.mark.asyncio
async def test_loop_survives_store_outage(sweeper, store, overdue, caplog):
    store.unavailable = True
    caplog.set_level(logging.WARNING, logger="app.services.expiry_sweeper")

    sweeper.start()
    try:
        await asyncio.sleep(0.05)
        assert store.bookings[overdue.id].status == "confirmed"

        store.unavailable = False
        for _ in range(100):
            if store.bookings[overdue.id].status == "cancelled":
                break
            await asyncio.sleep(0.01)
    finally:
        await sweeper.stop()

    assert store.bookings[overdue.id].status == "cancelled"
    assert "booking store unavailable" in caplog.text


@pytest.mark.asyncio
async def test_stop_without_start(sweeper):
    await sweeper.stop()
