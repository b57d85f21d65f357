from __future__ import annotations

import enum
from datetime import date
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, UUID4, field_validator

from app.utils.timeslots import HHMM_PATTERN, WEEKDAYS, weekday_key


class SeatType(str, enum.Enum):
    TABLE_2 = "table-2"
    TABLE_4 = "table-4"
    TABLE_6 = "table-6"
    BAR = "bar"
    COUNTER = "counter"


SEAT_CAPACITY = {
    SeatType.TABLE_2.value: 2,
    SeatType.TABLE_4.value: 4,
    SeatType.TABLE_6.value: 6,
    SeatType.BAR.value: 1,
    SeatType.COUNTER.value: 1,
}
DEFAULT_SEAT_CAPACITY = 2


def seat_capacity(seat_type: str) -> int:
    return SEAT_CAPACITY.get(seat_type, DEFAULT_SEAT_CAPACITY)


class SeatPosition(BaseModel):
    x: int = 0
    y: int = 0


class SeatRecord(BaseModel):
    seat_number: str
    seat_type: str
    is_available: bool = True
    position: SeatPosition = Field(default_factory=SeatPosition)

    @property
    def capacity(self) -> int:
        return seat_capacity(self.seat_type)


class DayHours(BaseModel):
    open: Optional[str] = None
    close: Optional[str] = None
    is_closed: bool = False

    @field_validator("open", "close")
    @classmethod
    def check_hhmm(cls, v):
        if v is not None and not HHMM_PATTERN.match(v):
            raise ValueError("time must be HH:MM (24-hour)")
        return v


class RestaurantRecord(BaseModel):
    """Restaurant as seen by the booking core: seats plus weekly hours."""

    id: UUID4
    name: str
    is_active: bool = True
    seats: List[SeatRecord] = []
    operating_hours: Dict[str, DayHours] = {}

    @field_validator("operating_hours")
    @classmethod
    def known_weekdays(cls, v):
        unknown = set(v) - set(WEEKDAYS)
        if unknown:
            raise ValueError(f"unknown weekday(s): {', '.join(sorted(unknown))}")
        return v

    def find_seat(self, seat_number: str) -> Optional[SeatRecord]:
        for seat in self.seats:
            if seat.seat_number == seat_number:
                return seat
        return None

    def hours_for(self, day: date) -> Optional[DayHours]:
        return self.operating_hours.get(weekday_key(day))
