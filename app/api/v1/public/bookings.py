from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import Services, ensure_can_access, get_current_actor, get_services, require
from app.core.actors import Actor, Capability
from app.core.exceptions import Forbidden
from app.schemas.booking import (
    BookingCancel,
    BookingCreate,
    BookingOut,
    BookingResponse,
    BookingStatus,
)
from app.schemas.common import PaginatedResponse, total_pages

router = APIRouter(prefix="/bookings", tags=["Bookings"])


# ---------------------------------------------------------------------------
# POST /bookings - reserve a seat
# ---------------------------------------------------------------------------


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    data: BookingCreate,
    services: Services = Depends(get_services),
    actor: Actor = Depends(require(Capability.BOOK)),
):
    """
    Reserve one seat for a date and time.

    - The seat must exist and be free for that exact slot.
    - The arrival deadline is the booking time + 15 minutes; staff must
      verify the customer before then or the booking is released.
    - Walk-ins are created by staff through the admin endpoint instead.
    """
    if data.is_walk_in:
        raise Forbidden("Walk-in bookings are created by restaurant staff")

    booking = await services.lifecycle.create(data, actor)
    return BookingResponse(
        message="Booking created successfully",
        booking=BookingOut.from_record(booking, services.clock.now()),
    )


# ---------------------------------------------------------------------------
# GET /bookings - the current user's bookings
# ---------------------------------------------------------------------------


@router.get("/", response_model=PaginatedResponse[BookingOut])
async def list_my_bookings(
    status: Optional[BookingStatus] = Query(None, description="Filter by booking status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    services: Services = Depends(get_services),
    actor: Actor = Depends(require(Capability.VIEW_OWN_BOOKINGS)),
):
    """Return the authenticated user's bookings, newest first."""
    bookings, total = await services.queries.list_user_bookings(
        actor.user_id, status.value if status else None, page, limit
    )
    now = services.clock.now()
    return PaginatedResponse(
        data=[BookingOut.from_record(b, now) for b in bookings],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages(total, limit),
    )


# ---------------------------------------------------------------------------
# GET /bookings/{booking_id}
# ---------------------------------------------------------------------------


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    services: Services = Depends(get_services),
    actor: Actor = Depends(get_current_actor),
):
    """A single booking, by store id or booking reference."""
    booking = await services.lifecycle.get(booking_id)
    ensure_can_access(actor, booking, Capability.VIEW_OWN_BOOKINGS, Capability.VIEW_RESTAURANT_BOOKINGS)
    return BookingResponse(booking=BookingOut.from_record(booking, services.clock.now()))


# ---------------------------------------------------------------------------
# PATCH /bookings/{booking_id}/cancel
# ---------------------------------------------------------------------------


@router.patch("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str,
    data: Optional[BookingCancel] = None,
    services: Services = Depends(get_services),
    actor: Actor = Depends(get_current_actor),
):
    """
    Cancel a booking that is not already cancelled or completed.
    Frees the seat for the slot and notifies the restaurant room.
    """
    booking = await services.lifecycle.get(booking_id)
    ensure_can_access(actor, booking, Capability.CANCEL_OWN_BOOKING, Capability.CANCEL_RESTAURANT_BOOKING)

    reason = data.reason if data else None
    cancelled = await services.lifecycle.cancel(booking.id, reason, actor)
    return BookingResponse(
        message="Booking cancelled successfully",
        booking=BookingOut.from_record(cancelled, services.clock.now()),
    )
