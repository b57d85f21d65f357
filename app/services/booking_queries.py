from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID
from zoneinfo import ZoneInfo

from app.core.clock import Clock
from app.db.record_store import BookingFilter, Page, RecordStore
from app.schemas.booking import (
    BookingRecord,
    BookingStats,
    BookingStatus,
    MonthlyStats,
    TodayStats,
)
from app.utils.timeslots import local_now

REVENUE_STATUSES = frozenset({BookingStatus.ARRIVED.value, BookingStatus.COMPLETED.value})


class BookingQueries:
    """Read-side views over bookings: customer history, staff lists, stats."""

    def __init__(self, store: RecordStore, clock: Clock, tz: ZoneInfo):
        self.store = store
        self.clock = clock
        self.tz = tz

    def _today(self) -> date:
        return local_now(self.clock.now(), self.tz).date()

    def _pending_arrivals_filter(self, restaurant_id: UUID) -> BookingFilter:
        return BookingFilter(
            restaurant_id=restaurant_id,
            statuses=frozenset({BookingStatus.CONFIRMED.value}),
            verified=False,
            deadline_not_before=self.clock.now(),
        )

    async def list_user_bookings(
        self, user_id: UUID, status: Optional[str] = None, page: int = 1, limit: int = 10
    ) -> Tuple[List[BookingRecord], int]:
        """The user's bookings, newest first."""
        flt = BookingFilter(user_id=user_id, statuses=frozenset({status}) if status else None)
        total = await self.store.count(flt)
        bookings = await self.store.find(
            flt, Page(offset=(page - 1) * limit, limit=limit, order_by=["-created_at"])
        )
        return bookings, total

    async def list_restaurant_bookings(
        self,
        restaurant_id: UUID,
        status: Optional[str] = None,
        day: Optional[date] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[BookingRecord], int, List[BookingRecord]]:
        """
        Bookings for one restaurant ordered by slot, plus the arrivals staff
        still have to verify (confirmed, unverified, window still open).
        """
        flt = BookingFilter(
            restaurant_id=restaurant_id,
            statuses=frozenset({status}) if status else None,
            booking_date=day,
        )
        total = await self.store.count(flt)
        bookings = await self.store.find(
            flt,
            Page(offset=(page - 1) * limit, limit=limit, order_by=["booking_date", "booking_time"]),
        )
        pending = await self.store.find(
            self._pending_arrivals_filter(restaurant_id), Page(order_by=["arrival_deadline"])
        )
        return bookings, total, pending

    async def booking_stats(self, restaurant_id: UUID) -> BookingStats:
        today = self._today()
        tomorrow = today + timedelta(days=1)
        month_start = today.replace(day=1)
        month_end = (month_start + timedelta(days=32)).replace(day=1)

        def today_filter(**extra) -> BookingFilter:
            return BookingFilter(restaurant_id=restaurant_id, date_from=today, date_to=tomorrow, **extra)

        month_filter = BookingFilter(restaurant_id=restaurant_id, date_from=month_start, date_to=month_end)
        revenue_filter = BookingFilter(
            restaurant_id=restaurant_id,
            date_from=month_start,
            date_to=month_end,
            statuses=REVENUE_STATUSES,
        )

        return BookingStats(
            today=TodayStats(
                total_bookings=await self.store.count(today_filter()),
                verified=await self.store.count(today_filter(verified=True)),
                no_shows=await self.store.count(
                    today_filter(statuses=frozenset({BookingStatus.NO_SHOW.value}))
                ),
                cancelled=await self.store.count(
                    today_filter(statuses=frozenset({BookingStatus.CANCELLED.value}))
                ),
                pending_arrivals=await self.store.count(self._pending_arrivals_filter(restaurant_id)),
            ),
            monthly=MonthlyStats(
                total_bookings=await self.store.count(month_filter),
                revenue=await self.store.aggregate_sum(revenue_filter, "total_amount") or Decimal("0"),
            ),
        )
