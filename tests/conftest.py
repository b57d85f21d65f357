import os

# Settings are read at import time; keep the app off Postgres during tests
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SWEEPER_ENABLED", "false")
os.environ.setdefault("CREATE_DATABASE_ON_STARTUP", "false")

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest

from app.core.actors import Actor, Role
from app.schemas.booking import BookingRecord
from app.schemas.restaurant import DayHours, RestaurantRecord, SeatPosition, SeatRecord
from app.services.availability import SeatAvailabilityEngine
from app.services.booking_lifecycle import BookingLifecycleManager
from app.services.booking_queries import BookingQueries
from app.services.expiry_sweeper import ExpirySweeper
from app.utils.timeslots import WEEKDAYS, compute_arrival_deadline
from tests.fakes import FixedClock, InMemoryRecordStore, RecordingPublisher

KOLKATA = ZoneInfo("Asia/Kolkata")

# Saturday 1 June 2024, 10:00 in Kolkata
BOOKING_DAY = date(2024, 6, 1)
MORNING = datetime(2024, 6, 1, 4, 30, tzinfo=timezone.utc)


def make_restaurant(seats=None, hours=None, **kwargs) -> RestaurantRecord:
    if seats is None:
        seats = [
            SeatRecord(seat_number="T1", seat_type="table-2", position=SeatPosition(x=1, y=1)),
            SeatRecord(seat_number="T2", seat_type="table-4", position=SeatPosition(x=2, y=1)),
            SeatRecord(seat_number="B1", seat_type="bar", position=SeatPosition(x=0, y=3)),
        ]
    if hours is None:
        hours = {day: DayHours(open="09:00", close="22:00") for day in WEEKDAYS}
        hours["tuesday"] = DayHours(is_closed=True)
    return RestaurantRecord(id=uuid4(), name="Test Kitchen", seats=seats, operating_hours=hours, **kwargs)


def make_booking(restaurant: RestaurantRecord, seat_number="T1", booking_date=BOOKING_DAY,
                 booking_time="19:00", **overrides) -> BookingRecord:
    fields = dict(
        id=uuid4(),
        booking_id=f"RST{uuid4().hex[:18].upper()}",
        user_id=uuid4(),
        restaurant_id=restaurant.id,
        seat_number=seat_number,
        seat_type=restaurant.find_seat(seat_number).seat_type,
        party_size=2,
        booking_date=booking_date,
        booking_time=booking_time,
        arrival_deadline=compute_arrival_deadline(booking_date, booking_time, KOLKATA),
        contact_phone="9876543210",
        created_at=MORNING,
        updated_at=MORNING,
    )
    fields.update(overrides)
    return BookingRecord(**fields)


def booking_request(restaurant: RestaurantRecord, **overrides) -> dict:
    request = {
        "restaurant_id": str(restaurant.id),
        "seat_number": "T1",
        "party_size": 2,
        "booking_date": BOOKING_DAY.isoformat(),
        "booking_time": "19:00",
        "contact_phone": "9876543210",
    }
    request.update(overrides)
    return request


@pytest.fixture
def clock():
    return FixedClock(MORNING)


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def restaurant(store):
    return store.seed_restaurant(make_restaurant())


@pytest.fixture
def customer():
    return Actor(user_id=uuid4(), role=Role.USER)


@pytest.fixture
def staff(restaurant):
    return Actor(user_id=uuid4(), role=Role.SUBADMIN, restaurant_id=restaurant.id)


@pytest.fixture
def lifecycle(store, publisher, clock):
    return BookingLifecycleManager(store, publisher, clock, KOLKATA)


@pytest.fixture
def availability(store, clock):
    return SeatAvailabilityEngine(store, clock, KOLKATA)


@pytest.fixture
def queries(store, clock):
    return BookingQueries(store, clock, KOLKATA)


@pytest.fixture
def sweeper(store, lifecycle, clock):
    return ExpirySweeper(store, lifecycle, clock, interval_seconds=0.01, batch_size=200)
