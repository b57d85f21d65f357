import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from app.core.exceptions import StoreUnavailable
from app.db.record_store import (
    SORTABLE_FIELDS,
    BookingFilter,
    DuplicateKeyError,
    ExpectedState,
    Page,
    RecordStore,
)
from app.models.booking import Booking
from app.models.restaurant import OperatingHours, Restaurant, Seat
from app.schemas.booking import ACTIVE_STATUSES, BookingRecord
from app.schemas.restaurant import DayHours, RestaurantRecord, SeatPosition, SeatRecord

logger = logging.getLogger(__name__)

SUMMABLE_FIELDS = frozenset({"total_amount", "party_size"})


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _booking_clauses(flt: BookingFilter) -> list:
    clauses = []
    if flt.id is not None:
        clauses.append(Booking.id == flt.id)
    if flt.booking_id is not None:
        clauses.append(Booking.booking_id == flt.booking_id)
    if flt.restaurant_id is not None:
        clauses.append(Booking.restaurant_id == flt.restaurant_id)
    if flt.user_id is not None:
        clauses.append(Booking.user_id == flt.user_id)
    if flt.seat_number is not None:
        clauses.append(Booking.seat_number == flt.seat_number)
    if flt.booking_date is not None:
        clauses.append(Booking.booking_date == flt.booking_date)
    if flt.date_from is not None:
        clauses.append(Booking.booking_date >= flt.date_from)
    if flt.date_to is not None:
        clauses.append(Booking.booking_date < flt.date_to)
    if flt.booking_time is not None:
        clauses.append(Booking.booking_time == flt.booking_time)
    if flt.statuses is not None:
        clauses.append(Booking.status.in_(sorted(flt.statuses)))
    if flt.verified is not None:
        clauses.append(Booking.verified == flt.verified)
    if flt.deadline_before is not None:
        clauses.append(Booking.arrival_deadline < flt.deadline_before)
    if flt.deadline_not_before is not None:
        clauses.append(Booking.arrival_deadline >= flt.deadline_not_before)
    return clauses


def _order_clauses(order_by: List[str]) -> list:
    clauses = []
    for key in order_by:
        name = key.lstrip("-")
        if name not in SORTABLE_FIELDS:
            raise ValueError(f"Cannot sort bookings by '{name}'")
        column = getattr(Booking, name)
        clauses.append(column.desc() if key.startswith("-") else column.asc())
    return clauses


def _restaurant_record(row: Restaurant) -> RestaurantRecord:
    return RestaurantRecord(
        id=row.id,
        name=row.name,
        is_active=bool(row.is_active),
        seats=[
            SeatRecord(
                seat_number=s.seat_number,
                seat_type=s.seat_type,
                is_available=bool(s.is_available),
                position=SeatPosition(x=s.position_x, y=s.position_y),
            )
            for s in row.seats
        ],
        operating_hours={
            h.weekday: DayHours(open=h.open, close=h.close, is_closed=bool(h.is_closed))
            for h in row.operating_hours
        },
    )


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class SqlRecordStore(RecordStore):
    """RecordStore over SQLAlchemy's asyncio engine; one short session per call."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    @asynccontextmanager
    async def _session(self):
        try:
            async with self.session_factory() as session:
                yield session
        except (OperationalError, InterfaceError, OSError) as exc:
            logger.warning("Record store call failed: %s", exc)
            raise StoreUnavailable("Booking store is temporarily unavailable") from exc

    async def _load_restaurant(self, session: AsyncSession, restaurant_id: UUID) -> Optional[Restaurant]:
        result = await session.execute(
            select(Restaurant)
            .options(selectinload(Restaurant.seats), selectinload(Restaurant.operating_hours))
            .where(Restaurant.id == restaurant_id)
        )
        return result.scalar_one_or_none()

    # --- Restaurants ---

    async def get_restaurant(self, restaurant_id: UUID) -> Optional[RestaurantRecord]:
        async with self._session() as session:
            row = await self._load_restaurant(session, restaurant_id)
            return _restaurant_record(row) if row else None

    async def add_restaurant(self, restaurant: RestaurantRecord) -> RestaurantRecord:
        async with self._session() as session:
            row = Restaurant(id=restaurant.id, name=restaurant.name, is_active=restaurant.is_active)
            row.seats = [
                Seat(
                    seat_number=seat.seat_number,
                    seat_type=seat.seat_type,
                    is_available=seat.is_available,
                    position_x=seat.position.x,
                    position_y=seat.position.y,
                    position_index=index,
                )
                for index, seat in enumerate(restaurant.seats)
            ]
            row.operating_hours = [
                OperatingHours(weekday=day, open=hours.open, close=hours.close, is_closed=hours.is_closed)
                for day, hours in restaurant.operating_hours.items()
            ]
            session.add(row)
            await session.commit()
            row = await self._load_restaurant(session, restaurant.id)
            return _restaurant_record(row)

    async def set_seat_available(self, restaurant_id: UUID, seat_number: str, is_available: bool) -> None:
        async with self._session() as session:
            await session.execute(
                update(Seat)
                .where(Seat.restaurant_id == restaurant_id, Seat.seat_number == seat_number)
                .values(is_available=is_available)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

    # --- Bookings ---

    async def find_one(self, flt: BookingFilter) -> Optional[BookingRecord]:
        async with self._session() as session:
            result = await session.execute(select(Booking).where(*_booking_clauses(flt)).limit(1))
            row = result.scalar_one_or_none()
            return BookingRecord.model_validate(row) if row else None

    async def find(self, flt: BookingFilter, page: Optional[Page] = None) -> List[BookingRecord]:
        page = page or Page()
        query = (
            select(Booking)
            .where(*_booking_clauses(flt))
            .order_by(*_order_clauses(page.order_by))
            .offset(page.offset)
        )
        if page.limit is not None:
            query = query.limit(page.limit)
        async with self._session() as session:
            result = await session.execute(query)
            return [BookingRecord.model_validate(row) for row in result.scalars().all()]

    async def count(self, flt: BookingFilter) -> int:
        async with self._session() as session:
            result = await session.execute(
                select(func.count()).select_from(Booking).where(*_booking_clauses(flt))
            )
            return int(result.scalar_one())

    async def insert(self, booking: BookingRecord) -> BookingRecord:
        data = booking.model_dump()
        for key in ("created_at", "updated_at"):
            if data.get(key) is None:
                data.pop(key, None)

        async with self._session() as session:
            session.add(Booking(**data))
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                # The active-slot index and the reference column are the only
                # unique rules on the table; tell them apart by looking.
                taken = await session.execute(
                    select(Booking.id).where(
                        Booking.restaurant_id == booking.restaurant_id,
                        Booking.seat_number == booking.seat_number,
                        Booking.booking_date == booking.booking_date,
                        Booking.booking_time == booking.booking_time,
                        Booking.status.in_(sorted(ACTIVE_STATUSES)),
                    ).limit(1)
                )
                if taken.scalar_one_or_none() is not None:
                    raise DuplicateKeyError("slot")
                raise DuplicateKeyError("booking_id")

            result = await session.execute(select(Booking).where(Booking.id == booking.id))
            return BookingRecord.model_validate(result.scalar_one())

    async def conditional_update(
        self, id: UUID, expected: ExpectedState, patch: Dict[str, Any]
    ) -> Optional[BookingRecord]:
        stmt = update(Booking).where(
            Booking.id == id,
            Booking.status.in_(sorted(expected.statuses)),
        )
        if expected.verified is not None:
            stmt = stmt.where(Booking.verified == expected.verified)
        if expected.deadline_not_before is not None:
            stmt = stmt.where(Booking.arrival_deadline >= expected.deadline_not_before)
        stmt = stmt.values(**patch).execution_options(synchronize_session=False)

        async with self._session() as session:
            result = await session.execute(stmt)
            if result.rowcount != 1:
                await session.rollback()
                return None
            await session.commit()
            fresh = await session.execute(select(Booking).where(Booking.id == id))
            return BookingRecord.model_validate(fresh.scalar_one())

    async def aggregate_sum(self, flt: BookingFilter, field_name: str) -> Decimal:
        if field_name not in SUMMABLE_FIELDS:
            raise ValueError(f"Cannot sum bookings by '{field_name}'")
        column = getattr(Booking, field_name)
        async with self._session() as session:
            result = await session.execute(
                select(func.coalesce(func.sum(column), 0)).where(*_booking_clauses(flt))
            )
            return Decimal(str(result.scalar_one()))
