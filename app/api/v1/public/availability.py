import datetime

from fastapi import APIRouter, Depends, Query
from uuid import UUID

from app.api.deps import Services, get_services
from app.schemas.seat import SeatAvailabilityResponse

router = APIRouter(prefix="/restaurants", tags=["Seat Availability"])


@router.get("/{restaurant_id}/seat-availability", response_model=SeatAvailabilityResponse)
async def get_seat_availability(
    restaurant_id: UUID,
    date: datetime.date = Query(..., description="Booking date (YYYY-MM-DD)"),
    time: str = Query(..., description="Slot start time (HH:MM, 24-hour)"),
    services: Services = Depends(get_services),
):
    """
    Seat map for one slot.

    - `seat_availability`: every seat with its type, capacity and whether it is
      free for this exact date and time.
    - `available_seats`: the free ones.
    - `time_slots`: the day's 30-minute slots from the operating hours.
    - `next_available_times`: when nothing is free, the next slots (up to 10,
      within 7 days) that have at least one free seat.
    """
    return await services.availability.get_seat_availability(restaurant_id, date, time)
