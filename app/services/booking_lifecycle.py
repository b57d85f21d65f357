"""
Booking lifecycle: creation and every status transition.

    created (confirmed) ──verify──▶ arrived ──complete──▶ completed
           │                          │
           ├──no-show──▶ no-show      └──cancel──▶ cancelled
           ├──cancel───▶ cancelled
           └──expire───▶ cancelled   (sweeper, deadline passed)

Walk-ins start in `arrived`, already verified. A no-show can still be
cancelled; only cancelled and completed are final for cancel.

Every transition is a conditional update on the status the booking was read
in, so two actors racing on one booking end with one winner and one
Conflict. The seat cache on the restaurant is refreshed afterwards from the
active bookings for that seat and is never used to decide a transition.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, FrozenSet, Optional, Union
from uuid import UUID, uuid4
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from app.core.actors import Actor
from app.core.clock import Clock
from app.core.exceptions import (
    Conflict,
    IllegalTransition,
    InvalidArgument,
    NotFound,
    StoreUnavailable,
)
from app.db.record_store import BookingFilter, DuplicateKeyError, ExpectedState, RecordStore
from app.schemas.booking import ACTIVE_STATUSES, BookingCreate, BookingRecord, BookingStatus
from app.services import events
from app.services.events import EventPublisher
from app.utils.booking_ref import generate_booking_ref
from app.utils.timeslots import compute_arrival_deadline

logger = logging.getLogger(__name__)

NO_SHOW_REASON = "Customer did not arrive within the 15-minute window"
EXPIRED_REASON = "No-show - exceeded 15 minute arrival window"
DEFAULT_CANCEL_REASON = "Cancelled by user"

MAX_REFERENCE_ATTEMPTS = 5


@dataclass(frozen=True)
class Transition:
    name: str
    sources: FrozenSet[str]
    target: str
    releases_seat: bool
    event: str


VERIFY = Transition(
    "verify", frozenset({BookingStatus.CONFIRMED.value}),
    BookingStatus.ARRIVED.value, False, events.BOOKING_VERIFIED,
)
NO_SHOW = Transition(
    "mark as no-show", frozenset({BookingStatus.CONFIRMED.value}),
    BookingStatus.NO_SHOW.value, True, events.BOOKING_NO_SHOW,
)
CANCEL = Transition(
    "cancel",
    frozenset({
        BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value,
        BookingStatus.ARRIVED.value, BookingStatus.NO_SHOW.value,
    }),
    BookingStatus.CANCELLED.value, True, events.BOOKING_CANCELLED,
)
COMPLETE = Transition(
    "complete", frozenset({BookingStatus.ARRIVED.value}),
    BookingStatus.COMPLETED.value, True, events.BOOKING_COMPLETED,
)
EXPIRE = Transition(
    "expire", frozenset({BookingStatus.CONFIRMED.value}),
    BookingStatus.CANCELLED.value, True, events.BOOKING_CANCELLED,
)


class BookingLifecycleManager:

    def __init__(
        self,
        store: RecordStore,
        publisher: EventPublisher,
        clock: Clock,
        tz: ZoneInfo,
        arrival_window_minutes: int = 15,
        walk_in_window_minutes: int = 120,
    ):
        self.store = store
        self.publisher = publisher
        self.clock = clock
        self.tz = tz
        self.arrival_window_minutes = arrival_window_minutes
        self.walk_in_window_minutes = walk_in_window_minutes

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    @staticmethod
    def _parse_request(request: Union[BookingCreate, Dict[str, Any]]) -> BookingCreate:
        if isinstance(request, BookingCreate):
            return request
        try:
            return BookingCreate.model_validate(request)
        except ValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ())) or "request"
            raise InvalidArgument(f"{field}: {first.get('msg')}") from exc

    async def get(self, booking_ref: Union[str, UUID]) -> BookingRecord:
        """Resolve a store id or a human-readable booking reference."""
        if isinstance(booking_ref, UUID):
            flt = BookingFilter(id=booking_ref)
        else:
            try:
                flt = BookingFilter(id=UUID(str(booking_ref)))
            except ValueError:
                flt = BookingFilter(booking_id=str(booking_ref))
        booking = await self.store.find_one(flt)
        if booking is None:
            raise NotFound("Booking not found")
        return booking

    async def _refresh_seat_cache(self, restaurant_id: UUID, seat_number: str) -> None:
        # Best-effort projection of booking state onto the seat record
        try:
            held = await self.store.count(
                BookingFilter(restaurant_id=restaurant_id, seat_number=seat_number, statuses=ACTIVE_STATUSES)
            )
            await self.store.set_seat_available(restaurant_id, seat_number, held == 0)
        except StoreUnavailable:
            logger.warning("Could not refresh seat cache for %s/%s", restaurant_id, seat_number)

    async def _publish(self, booking: BookingRecord, event_name: str, payload: Dict[str, Any]) -> None:
        try:
            await self.publisher.publish(str(booking.restaurant_id), event_name, payload)
        except Exception:
            logger.exception("Failed to publish %s for booking %s", event_name, booking.booking_id)

    async def _transition(
        self,
        booking: BookingRecord,
        transition: Transition,
        patch: Dict[str, Any],
        expected: Optional[ExpectedState] = None,
        now: Optional[datetime] = None,
    ) -> BookingRecord:
        if booking.status not in transition.sources:
            raise IllegalTransition(booking.status, transition.name)

        now = now or self.clock.now()
        expected = expected or ExpectedState(statuses=frozenset({booking.status}))
        patch = {**patch, "status": transition.target, "updated_at": now}

        updated = await self.store.conditional_update(booking.id, expected, patch)
        if updated is None:
            raise Conflict(
                f"Booking {booking.booking_id} changed before it could {transition.name}; reload and try again"
            )

        logger.info(
            "Booking %s: %s -> %s (%s)",
            updated.booking_id, booking.status, updated.status, transition.name,
        )
        if transition.releases_seat:
            await self._refresh_seat_cache(updated.restaurant_id, updated.seat_number)
        return updated

    # -----------------------------------------------------------------------
    # Create
    # -----------------------------------------------------------------------

    async def create(self, request: Union[BookingCreate, Dict[str, Any]], actor: Actor) -> BookingRecord:
        """
        Reserve a seat for one slot (or seat a walk-in).

        - Restaurant must exist and be active.
        - Seat must exist. The seat cache is never a guard by itself; only an
          active booking in the same slot rejects the request.
        - The insert itself enforces one active booking per slot; losing
          that race surfaces as Conflict.
        """
        request = self._parse_request(request)
        now = self.clock.now()

        restaurant = await self.store.get_restaurant(request.restaurant_id)
        if restaurant is None or not restaurant.is_active:
            raise NotFound("Restaurant not found or inactive")

        seat = restaurant.find_seat(request.seat_number)
        if seat is None:
            raise InvalidArgument(f"Seat {request.seat_number} not found")
        if request.seat_type and request.seat_type != seat.seat_type:
            raise InvalidArgument(
                f"Seat {seat.seat_number} is a '{seat.seat_type}', not '{request.seat_type}'"
            )

        walk_in = request.is_walk_in
        if walk_in:
            deadline = compute_arrival_deadline(
                request.booking_date, request.booking_time, self.tz,
                is_walk_in=True, now=now, walk_in_window_minutes=self.walk_in_window_minutes,
            )
        else:
            deadline = compute_arrival_deadline(
                request.booking_date, request.booking_time, self.tz, self.arrival_window_minutes,
            )
            if deadline < now:
                raise InvalidArgument("Booking time has already passed")

        slot_filter = BookingFilter(
            restaurant_id=request.restaurant_id,
            seat_number=request.seat_number,
            booking_date=request.booking_date,
            booking_time=request.booking_time,
            statuses=ACTIVE_STATUSES,
        )
        if await self.store.find_one(slot_filter) is not None:
            # The seat cache spans every date, so it only sharpens the message
            if not walk_in and not seat.is_available:
                raise Conflict("Seat is not available")
            raise Conflict("Seat is already booked for this date and time")

        fields = dict(
            user_id=actor.user_id,
            restaurant_id=request.restaurant_id,
            seat_number=seat.seat_number,
            seat_type=seat.seat_type,
            party_size=request.party_size,
            booking_date=request.booking_date,
            booking_time=request.booking_time,
            arrival_deadline=deadline,
            special_requests=request.special_requests,
            contact_phone=request.contact_phone,
            customer_name=request.customer_name,
            notes=request.notes,
            is_walk_in=walk_in,
            created_at=now,
            updated_at=now,
        )
        if walk_in:
            fields.update(
                status=BookingStatus.ARRIVED.value,
                verified=True,
                verified_by=actor.user_id,
                verification_time=now,
                actual_arrival_time=now,
            )

        booking = None
        for _ in range(MAX_REFERENCE_ATTEMPTS):
            record = BookingRecord(id=uuid4(), booking_id=generate_booking_ref(now, walk_in), **fields)
            try:
                booking = await self.store.insert(record)
                break
            except DuplicateKeyError as exc:
                if exc.key == "slot":
                    raise Conflict("Seat is already booked for this date and time") from exc
                logger.warning("Booking reference %s already taken; regenerating", record.booking_id)
        if booking is None:
            raise Conflict("Could not allocate a booking reference; please retry")

        logger.info(
            "Booking %s created: restaurant=%s seat=%s %s %s walk_in=%s",
            booking.booking_id, booking.restaurant_id, booking.seat_number,
            booking.booking_date, booking.booking_time, walk_in,
        )
        await self._refresh_seat_cache(booking.restaurant_id, booking.seat_number)
        await self._publish(booking, events.NEW_BOOKING, {
            "booking": booking.model_dump(mode="json"),
            "seat_number": booking.seat_number,
            "message": f"New booking created for seat {booking.seat_number}",
        })
        return booking

    # -----------------------------------------------------------------------
    # Transitions
    # -----------------------------------------------------------------------

    async def verify_arrival(self, booking_ref: Union[str, UUID], verifier_id: UUID) -> BookingRecord:
        booking = await self.get(booking_ref)
        now = self.clock.now()

        if booking.status != BookingStatus.CONFIRMED.value or booking.verified:
            raise IllegalTransition(booking.status, VERIFY.name)
        if now > booking.arrival_deadline:
            raise IllegalTransition(
                booking.status, VERIFY.name,
                "Booking cannot be verified at this time: the arrival window has closed",
            )

        updated = await self._transition(
            booking, VERIFY,
            {
                "verified": True,
                "verified_by": verifier_id,
                "verification_time": now,
                "actual_arrival_time": now,
            },
            expected=ExpectedState(
                statuses=VERIFY.sources, verified=False, deadline_not_before=now,
            ),
            now=now,
        )
        await self._publish(updated, VERIFY.event, {
            "booking_id": updated.booking_id,
            "seat_number": updated.seat_number,
            "verified_by": str(verifier_id),
            "verification_time": now.isoformat(),
        })
        return updated

    async def mark_no_show(self, booking_ref: Union[str, UUID]) -> BookingRecord:
        booking = await self.get(booking_ref)
        updated = await self._transition(booking, NO_SHOW, {"cancel_reason": NO_SHOW_REASON})
        await self._publish(updated, NO_SHOW.event, {
            "booking_id": updated.booking_id,
            "seat_number": updated.seat_number,
            "reason": updated.cancel_reason,
        })
        return updated

    async def cancel(self, booking_ref: Union[str, UUID], reason: Optional[str], actor: Actor) -> BookingRecord:
        booking = await self.get(booking_ref)
        now = self.clock.now()
        updated = await self._transition(
            booking, CANCEL,
            {"cancel_reason": reason or DEFAULT_CANCEL_REASON, "cancelled_at": now},
            now=now,
        )
        logger.info("Booking %s cancelled by %s (%s)", updated.booking_id, actor.user_id, actor.role.value)
        await self._publish(updated, CANCEL.event, {
            "booking_id": updated.booking_id,
            "seat_number": updated.seat_number,
            "reason": updated.cancel_reason,
        })
        return updated

    async def complete(self, booking_ref: Union[str, UUID]) -> BookingRecord:
        booking = await self.get(booking_ref)
        updated = await self._transition(booking, COMPLETE, {})
        await self._publish(updated, COMPLETE.event, {
            "booking_id": updated.booking_id,
            "seat_number": updated.seat_number,
        })
        return updated

    async def expire(self, booking: BookingRecord) -> BookingRecord:
        """Cancel a confirmed booking nobody verified before its deadline."""
        now = self.clock.now()
        if booking.verified or not booking.is_expired(now):
            raise IllegalTransition(booking.status, EXPIRE.name)

        updated = await self._transition(
            booking, EXPIRE,
            {"cancel_reason": EXPIRED_REASON, "cancelled_at": now},
            expected=ExpectedState(statuses=EXPIRE.sources, verified=False),
            now=now,
        )
        await self._publish(updated, EXPIRE.event, {
            "booking_id": updated.booking_id,
            "seat_number": updated.seat_number,
            "reason": updated.cancel_reason,
        })
        return updated
