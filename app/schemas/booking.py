from __future__ import annotations

import enum
from typing import Optional, List
from pydantic import BaseModel, Field, UUID4, field_validator, model_validator
from decimal import Decimal
from datetime import date, datetime
from uuid import UUID

from app.utils.timeslots import HHMM_PATTERN, format_time_remaining


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ARRIVED = "arrived"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


# A booking in one of these holds its seat for the slot
ACTIVE_STATUSES = frozenset({BookingStatus.CONFIRMED.value, BookingStatus.ARRIVED.value})
TERMINAL_STATUSES = frozenset({
    BookingStatus.COMPLETED.value,
    BookingStatus.CANCELLED.value,
    BookingStatus.NO_SHOW.value,
})


# Booking - fields shared by customer bookings and walk-ins
class BookingDetails(BaseModel):
    seat_number: str = Field(min_length=1, max_length=20)
    seat_type: Optional[str] = None
    party_size: int = Field(ge=1, le=8)
    booking_date: date
    booking_time: str
    special_requests: Optional[str] = Field(None, max_length=200)
    contact_phone: str = Field(pattern=r"^\d{10}$")
    notes: Optional[str] = Field(None, max_length=300)
    customer_name: Optional[str] = Field(None, max_length=100)

    @field_validator("booking_time")
    @classmethod
    def normalise_time(cls, v):
        match = HHMM_PATTERN.match(v or "")
        if not match:
            raise ValueError("Please enter time in HH:MM format")
        return f"{int(match.group(1)):02d}:{match.group(2)}"

    @field_validator("booking_date", mode="before")
    @classmethod
    def strip_time_of_day(cls, v):
        # "2024-06-01T19:00:00Z" from a JS client still means the 1st
        if isinstance(v, datetime):
            return v.date()
        if isinstance(v, str) and "T" in v:
            return v.split("T", 1)[0]
        return v


# Booking - Create (POST /bookings)
class BookingCreate(BookingDetails):
    restaurant_id: UUID4
    is_walk_in: bool = False

    @model_validator(mode="after")
    def walk_in_needs_name(self):
        if self.is_walk_in and not (self.customer_name or "").strip():
            raise ValueError("customer_name is required for walk-in bookings")
        return self


# Walk-in - Create (POST /admin/restaurants/{id}/walk-ins); the path names the restaurant
class WalkInCreate(BookingDetails):
    customer_name: str = Field(min_length=1, max_length=100)


class BookingCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=200)


# Booking - full record, as stored
class BookingRecord(BaseModel):
    id: UUID
    booking_id: str
    user_id: UUID
    restaurant_id: UUID
    verified_by: Optional[UUID] = None
    seat_number: str
    seat_type: str
    party_size: int
    booking_date: date
    booking_time: str
    status: BookingStatus = BookingStatus.CONFIRMED
    arrival_deadline: datetime
    actual_arrival_time: Optional[datetime] = None
    verified: bool = False
    verification_time: Optional[datetime] = None
    special_requests: Optional[str] = None
    contact_phone: str
    customer_name: Optional[str] = None
    total_amount: Decimal = Decimal("0")
    payment_status: PaymentStatus = PaymentStatus.PENDING
    cancel_reason: Optional[str] = None
    notes: Optional[str] = None
    is_walk_in: bool = False
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        use_enum_values = True
        validate_default = True

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def is_expired(self, now: datetime) -> bool:
        return (
            self.status == BookingStatus.CONFIRMED.value
            and not self.verified
            and now > self.arrival_deadline
        )

    def time_remaining(self, now: datetime) -> Optional[str]:
        if self.verified or self.status != BookingStatus.CONFIRMED.value:
            return None
        return format_time_remaining(self.arrival_deadline, now)


# Booking - API response payload
class BookingOut(BookingRecord):
    time_remaining: Optional[str] = None
    is_expired: bool = False

    @classmethod
    def from_record(cls, record: BookingRecord, now: datetime) -> "BookingOut":
        return cls(
            **record.model_dump(),
            time_remaining=record.time_remaining(now),
            is_expired=record.is_expired(now),
        )


class BookingResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    booking: BookingOut


class RestaurantBookingsResponse(BaseModel):
    success: bool = True
    data: List[BookingOut]
    total: int
    page: int
    limit: int
    total_pages: int
    pending_arrivals: List[BookingOut]


# Booking statistics (GET /admin/restaurants/{id}/booking-stats)
class TodayStats(BaseModel):
    total_bookings: int
    verified: int
    no_shows: int
    cancelled: int
    pending_arrivals: int


class MonthlyStats(BaseModel):
    total_bookings: int
    revenue: Decimal


class BookingStats(BaseModel):
    today: TodayStats
    monthly: MonthlyStats
