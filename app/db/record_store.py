"""
Persistence contract consumed by the booking core.

Every call is a single atomic round-trip. Two of them carry the correctness
of the whole system:

- `insert` must reject a second active booking for the same
  (restaurant, seat, date, time) on its own, without a prior read.
- `conditional_update` only writes when the stored row still matches the
  expected state, so racing transitions on one booking resolve to one winner.
"""

import abc
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, FrozenSet, List, Optional
from uuid import UUID

from app.schemas.booking import BookingRecord
from app.schemas.restaurant import RestaurantRecord


class DuplicateKeyError(Exception):
    """Insert rejected by a uniqueness rule. `key` is "slot" or "booking_id"."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"duplicate {key}")


@dataclass(frozen=True)
class BookingFilter:
    id: Optional[UUID] = None
    booking_id: Optional[str] = None
    restaurant_id: Optional[UUID] = None
    user_id: Optional[UUID] = None
    seat_number: Optional[str] = None
    booking_date: Optional[date] = None
    date_from: Optional[date] = None   # inclusive
    date_to: Optional[date] = None     # exclusive
    booking_time: Optional[str] = None
    statuses: Optional[FrozenSet[str]] = None
    verified: Optional[bool] = None
    deadline_before: Optional[datetime] = None      # arrival_deadline <  value
    deadline_not_before: Optional[datetime] = None  # arrival_deadline >= value


@dataclass(frozen=True)
class ExpectedState:
    """Preconditions a row must still satisfy for a conditional update to apply."""

    statuses: FrozenSet[str]
    verified: Optional[bool] = None
    deadline_not_before: Optional[datetime] = None


# Sort keys understood by every store: field name, "-" prefix for descending
SORTABLE_FIELDS = frozenset({
    "created_at", "booking_date", "booking_time", "arrival_deadline",
})


@dataclass
class Page:
    offset: int = 0
    limit: Optional[int] = None
    order_by: List[str] = field(default_factory=lambda: ["-created_at"])


class RecordStore(abc.ABC):

    # --- Restaurants ---

    @abc.abstractmethod
    async def get_restaurant(self, restaurant_id: UUID) -> Optional[RestaurantRecord]:
        ...

    @abc.abstractmethod
    async def add_restaurant(self, restaurant: RestaurantRecord) -> RestaurantRecord:
        ...

    @abc.abstractmethod
    async def set_seat_available(
        self, restaurant_id: UUID, seat_number: str, is_available: bool
    ) -> None:
        ...

    # --- Bookings ---

    @abc.abstractmethod
    async def find_one(self, flt: BookingFilter) -> Optional[BookingRecord]:
        ...

    @abc.abstractmethod
    async def find(self, flt: BookingFilter, page: Optional[Page] = None) -> List[BookingRecord]:
        ...

    @abc.abstractmethod
    async def count(self, flt: BookingFilter) -> int:
        ...

    @abc.abstractmethod
    async def insert(self, booking: BookingRecord) -> BookingRecord:
        """Persist a new booking; raises DuplicateKeyError on a taken slot or reference."""

    @abc.abstractmethod
    async def conditional_update(
        self, id: UUID, expected: ExpectedState, patch: Dict[str, Any]
    ) -> Optional[BookingRecord]:
        """Apply `patch` iff the row matches `expected`; the updated record, or None on conflict."""

    @abc.abstractmethod
    async def aggregate_sum(self, flt: BookingFilter, field_name: str) -> Decimal:
        ...
