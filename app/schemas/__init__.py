from app.schemas.common import PaginatedResponse, ErrorResponse, IllegalTransitionError, SweepResult
from app.schemas.restaurant import (
    SeatType, SeatPosition, SeatRecord, DayHours, RestaurantRecord, seat_capacity,
)
from app.schemas.seat import SeatStatus, NextAvailableTime, SeatAvailabilityResponse
from app.schemas.booking import (
    BookingStatus, PaymentStatus, ACTIVE_STATUSES, TERMINAL_STATUSES,
    BookingDetails, BookingCreate, WalkInCreate, BookingCancel, BookingRecord, BookingOut, BookingResponse,
    RestaurantBookingsResponse, BookingStats, TodayStats, MonthlyStats,
)
