import logging
from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, List, Optional, Set
from uuid import UUID
from zoneinfo import ZoneInfo

from app.core.clock import Clock
from app.core.exceptions import InvalidArgument, NotFound
from app.db.record_store import BookingFilter, Page, RecordStore
from app.schemas.booking import ACTIVE_STATUSES
from app.schemas.restaurant import DayHours, RestaurantRecord
from app.schemas.seat import NextAvailableTime, SeatAvailabilityResponse, SeatStatus
from app.utils import timeslots

logger = logging.getLogger(__name__)


class SeatAvailabilityEngine:
    """
    Read-only answers to "which seats are free" and "when is a seat next free".

    A seat is taken for a slot iff an active (confirmed/arrived) booking exists
    for that exact restaurant, seat, date and time. The restaurant's cached
    per-seat `is_available` flag is never consulted here.
    """

    def __init__(
        self,
        store: RecordStore,
        clock: Clock,
        tz: ZoneInfo,
        slot_minutes: int = timeslots.DEFAULT_SLOT_MINUTES,
        max_results: int = 10,
        max_days_ahead: int = 7,
    ):
        self.store = store
        self.clock = clock
        self.tz = tz
        self.slot_minutes = slot_minutes
        self.max_results = max_results
        self.max_days_ahead = max_days_ahead

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    async def _load_restaurant(self, restaurant_id: UUID) -> RestaurantRecord:
        restaurant = await self.store.get_restaurant(restaurant_id)
        if restaurant is None:
            raise NotFound("Restaurant not found")
        return restaurant

    def _reject_past(self, day: date) -> None:
        today = timeslots.local_now(self.clock.now(), self.tz).date()
        if day < today:
            raise InvalidArgument("Cannot check availability for a past date")

    async def _occupied_by_time(self, restaurant_id: UUID, day: date) -> Dict[str, Set[str]]:
        """booking_time -> seat numbers holding an active booking, for one day."""
        bookings = await self.store.find(
            BookingFilter(restaurant_id=restaurant_id, booking_date=day, statuses=ACTIVE_STATUSES),
            Page(order_by=["booking_time"]),
        )
        occupied = defaultdict(set)
        for booking in bookings:
            occupied[booking.booking_time].add(booking.seat_number)
        return occupied

    @staticmethod
    def _seat_statuses(restaurant: RestaurantRecord, taken: Set[str]) -> List[SeatStatus]:
        return [
            SeatStatus(
                seat_number=seat.seat_number,
                seat_type=seat.seat_type,
                capacity=seat.capacity,
                position=seat.position,
                is_available=seat.seat_number not in taken,
            )
            for seat in restaurant.seats
        ]

    # -----------------------------------------------------------------------
    # Operations
    # -----------------------------------------------------------------------

    def generate_time_slots(self, hours: Optional[DayHours]) -> List[str]:
        return timeslots.generate_time_slots(hours, self.slot_minutes)

    async def compute_availability(self, restaurant_id: UUID, day: date, time: str) -> List[SeatStatus]:
        time = timeslots.normalize_hhmm(time)
        restaurant = await self._load_restaurant(restaurant_id)
        self._reject_past(day)

        taken = {
            booking.seat_number
            for booking in await self.store.find(
                BookingFilter(
                    restaurant_id=restaurant_id,
                    booking_date=day,
                    booking_time=time,
                    statuses=ACTIVE_STATUSES,
                )
            )
        }
        return self._seat_statuses(restaurant, taken)

    async def find_next_available_times(
        self,
        restaurant_id: UUID,
        start_date: date,
        start_time: str,
        max_results: Optional[int] = None,
        max_days_ahead: Optional[int] = None,
    ) -> List[NextAvailableTime]:
        """
        Walk forward from (start_date, start_time) and collect slots with at
        least one free seat.

        The start day is included, but only its slots strictly after
        `start_time`, and slots at or before the local clock today are never
        offered; closed days contribute nothing. The scan covers
        `max_days_ahead` calendar days counting the start day and stops as
        soon as `max_results` entries are collected.
        """
        max_results = self.max_results if max_results is None else max_results
        max_days_ahead = self.max_days_ahead if max_days_ahead is None else max_days_ahead
        start_time = timeslots.normalize_hhmm(start_time)

        restaurant = await self._load_restaurant(restaurant_id)
        self._reject_past(start_date)

        seat_numbers = {seat.seat_number for seat in restaurant.seats}
        total_seats = len(seat_numbers)
        results: List[NextAvailableTime] = []
        if total_seats == 0 or max_results <= 0:
            return results

        local = timeslots.local_now(self.clock.now(), self.tz)
        today, now_hhmm = local.date(), local.strftime("%H:%M")

        for offset in range(max_days_ahead):
            day = start_date + timedelta(days=offset)
            slots = self.generate_time_slots(restaurant.hours_for(day))
            cutoff = start_time if offset == 0 else ""
            if day == today:
                cutoff = max(cutoff, now_hhmm)
            slots = [slot for slot in slots if slot > cutoff]
            if not slots:
                continue

            occupied = await self._occupied_by_time(restaurant_id, day)
            for slot in slots:
                free = total_seats - len(occupied.get(slot, set()) & seat_numbers)
                if free <= 0:
                    continue
                results.append(
                    NextAvailableTime(date=day, time=slot, available_seats=free, total_seats=total_seats)
                )
                if len(results) >= max_results:
                    return results

        return results

    async def get_seat_availability(self, restaurant_id: UUID, day: date, time: str) -> SeatAvailabilityResponse:
        """Seat map for one slot, plus the day's slots and (when full) where to look next."""
        time = timeslots.normalize_hhmm(time)
        seat_availability = await self.compute_availability(restaurant_id, day, time)
        available = [seat for seat in seat_availability if seat.is_available]

        restaurant = await self._load_restaurant(restaurant_id)
        next_times: List[NextAvailableTime] = []
        if not available:
            next_times = await self.find_next_available_times(restaurant_id, day, time)

        return SeatAvailabilityResponse(
            date=day,
            time=time,
            seat_availability=seat_availability,
            available_seats=available,
            next_available_times=next_times,
            time_slots=self.generate_time_slots(restaurant.hours_for(day)),
        )
