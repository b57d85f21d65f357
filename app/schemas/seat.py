from typing import List
from pydantic import BaseModel
import datetime

from app.schemas.restaurant import SeatPosition


# --- Seat map for one slot ---

class SeatStatus(BaseModel):
    seat_number: str
    seat_type: str
    capacity: int
    position: SeatPosition
    is_available: bool


# --- Next-available search ---

class NextAvailableTime(BaseModel):
    date: datetime.date
    time: str
    available_seats: int
    total_seats: int


# --- GET /restaurants/{id}/seat-availability ---

class SeatAvailabilityResponse(BaseModel):
    success: bool = True
    date: datetime.date
    time: str
    seat_availability: List[SeatStatus]
    available_seats: List[SeatStatus]
    next_available_times: List[NextAvailableTime]
    time_slots: List[str]
