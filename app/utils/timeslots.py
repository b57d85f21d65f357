import re
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo

from app.core.exceptions import InvalidArgument

HHMM_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

DEFAULT_SLOT_MINUTES = 30
MINUTES_PER_DAY = 24 * 60


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_hhmm(value: str) -> time:
    """Parse a 24-hour "HH:MM" (or "H:MM") string into a time."""
    match = HHMM_PATTERN.match(value or "")
    if not match:
        raise InvalidArgument(f"Invalid time '{value}'; expected HH:MM (24-hour)")
    return time(int(match.group(1)), int(match.group(2)))


def normalize_hhmm(value: str) -> str:
    """"9:05" -> "09:05". Slots are compared as strings, so the form must be fixed."""
    return parse_hhmm(value).strftime("%H:%M")


def weekday_key(day: date) -> str:
    return WEEKDAYS[day.weekday()]


def generate_time_slots(hours, interval_minutes: int = DEFAULT_SLOT_MINUTES) -> List[str]:
    """
    Return slot start-times between open and close for one day.

    The interval is half-open: the last slot starts strictly before close.
    A close at or before open means the day runs past midnight; slots belong
    to the booking date, so they stop at 24:00. A closed day, or a day with
    no open/close configured, yields no slots.

      {open: "09:00", close: "10:00"}  ->  ["09:00", "09:30"]
      {open: "23:00", close: "00:00"}  ->  ["23:00", "23:30"]
      {is_closed: True}                ->  []
    """
    if hours is None or hours.is_closed or not hours.open or not hours.close:
        return []

    open_at = parse_hhmm(hours.open)
    close_at = parse_hhmm(hours.close)
    current = open_at.hour * 60 + open_at.minute
    end = close_at.hour * 60 + close_at.minute
    if end <= current:
        end = MINUTES_PER_DAY

    slots = []
    while current < end:
        slots.append(f"{current // 60:02d}:{current % 60:02d}")
        current += interval_minutes
    return slots


def local_now(now: datetime, tz: ZoneInfo) -> datetime:
    return now.astimezone(tz)


def compute_arrival_deadline(
    booking_date: date,
    booking_time: str,
    tz: ZoneInfo,
    window_minutes: int = 15,
    *,
    is_walk_in: bool = False,
    now: Optional[datetime] = None,
    walk_in_window_minutes: int = 120,
) -> datetime:
    """
    The one place an arrival deadline is computed.

    Standard bookings: booking_date at booking_time, read as wall-clock time in
    the restaurant's timezone, plus the arrival window. Walk-ins are already
    seated, so they get `now` plus the (longer) walk-in window instead.

    Always returns an aware UTC datetime.
    """
    if is_walk_in:
        if now is None:
            raise ValueError("walk-in deadlines need the current time")
        return (now + timedelta(minutes=walk_in_window_minutes)).astimezone(timezone.utc)

    slot_start = datetime.combine(booking_date, parse_hhmm(booking_time), tzinfo=tz)
    return (slot_start + timedelta(minutes=window_minutes)).astimezone(timezone.utc)


def format_time_remaining(deadline: datetime, now: datetime) -> str:
    remaining = (deadline - now).total_seconds()
    if remaining <= 0:
        return "Expired"
    minutes, seconds = divmod(int(remaining), 60)
    return f"{minutes}m {seconds}s"
