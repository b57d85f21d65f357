import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import Services, ensure_manages, get_services, require
from app.core.actors import Actor, Capability
from app.schemas.booking import (
    BookingCancel,
    BookingOut,
    BookingResponse,
    BookingStats,
    BookingStatus,
    RestaurantBookingsResponse,
    WalkInCreate,
)
from app.schemas.common import SweepResult, total_pages

restaurant_router = APIRouter(prefix="/admin/restaurants", tags=["Admin - Bookings"])
router = APIRouter(prefix="/admin/bookings", tags=["Admin - Bookings"])


# ---------------------------------------------------------------------------
# GET /admin/restaurants/{restaurant_id}/bookings
# ---------------------------------------------------------------------------


@restaurant_router.get("/{restaurant_id}/bookings", response_model=RestaurantBookingsResponse)
async def list_restaurant_bookings(
    restaurant_id: UUID,
    status: Optional[BookingStatus] = Query(None, description="Filter by booking status"),
    date: Optional[datetime.date] = Query(None, description="Filter by booking date (YYYY-MM-DD)"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    services: Services = Depends(get_services),
    actor: Actor = Depends(require(Capability.VIEW_RESTAURANT_BOOKINGS)),
):
    """
    Bookings for one restaurant in slot order, plus `pending_arrivals`:
    confirmed bookings still waiting on a verification inside their window.
    """
    ensure_manages(actor, restaurant_id)
    bookings, total, pending = await services.queries.list_restaurant_bookings(
        restaurant_id, status.value if status else None, date, page, limit
    )
    now = services.clock.now()
    return RestaurantBookingsResponse(
        data=[BookingOut.from_record(b, now) for b in bookings],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages(total, limit),
        pending_arrivals=[BookingOut.from_record(b, now) for b in pending],
    )


# ---------------------------------------------------------------------------
# GET /admin/restaurants/{restaurant_id}/booking-stats
# ---------------------------------------------------------------------------


@restaurant_router.get("/{restaurant_id}/booking-stats", response_model=BookingStats)
async def booking_stats(
    restaurant_id: UUID,
    services: Services = Depends(get_services),
    actor: Actor = Depends(require(Capability.VIEW_RESTAURANT_BOOKINGS)),
):
    """Today's counts (bookings, verified, no-shows, cancelled, pending) and this month's revenue."""
    ensure_manages(actor, restaurant_id)
    return await services.queries.booking_stats(restaurant_id)


# ---------------------------------------------------------------------------
# POST /admin/restaurants/{restaurant_id}/walk-ins
# ---------------------------------------------------------------------------


@restaurant_router.post(
    "/{restaurant_id}/walk-ins",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_walk_in(
    restaurant_id: UUID,
    data: WalkInCreate,
    services: Services = Depends(get_services),
    actor: Actor = Depends(require(Capability.CREATE_WALK_IN)),
):
    """
    Seat a customer who is already at the door.
    The booking starts verified in `arrived`; `customer_name` is required.
    """
    ensure_manages(actor, restaurant_id)
    request = {**data.model_dump(), "restaurant_id": restaurant_id, "is_walk_in": True}
    booking = await services.lifecycle.create(request, actor)
    return BookingResponse(
        message="Walk-in seated",
        booking=BookingOut.from_record(booking, services.clock.now()),
    )


# ---------------------------------------------------------------------------
# Staff transitions: verify / complete / no-show / cancel
# ---------------------------------------------------------------------------


async def _load_managed(services: Services, actor: Actor, booking_id: str):
    booking = await services.lifecycle.get(booking_id)
    ensure_manages(actor, booking.restaurant_id)
    return booking


@router.patch("/{booking_id}/verify", response_model=BookingResponse)
async def verify_arrival(
    booking_id: str,
    services: Services = Depends(get_services),
    actor: Actor = Depends(require(Capability.VERIFY_ARRIVAL)),
):
    """Confirm the customer arrived. Only confirmed bookings within their 15-minute window."""
    booking = await _load_managed(services, actor, booking_id)
    verified = await services.lifecycle.verify_arrival(booking.id, actor.user_id)
    return BookingResponse(
        message="Customer arrival verified successfully",
        booking=BookingOut.from_record(verified, services.clock.now()),
    )


@router.patch("/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(
    booking_id: str,
    services: Services = Depends(get_services),
    actor: Actor = Depends(require(Capability.COMPLETE_BOOKING)),
):
    """Close out an arrived booking and free the seat."""
    booking = await _load_managed(services, actor, booking_id)
    completed = await services.lifecycle.complete(booking.id)
    return BookingResponse(
        message="Booking marked as completed",
        booking=BookingOut.from_record(completed, services.clock.now()),
    )


@router.patch("/{booking_id}/no-show", response_model=BookingResponse)
async def mark_no_show(
    booking_id: str,
    services: Services = Depends(get_services),
    actor: Actor = Depends(require(Capability.MARK_NO_SHOW)),
):
    booking = await _load_managed(services, actor, booking_id)
    marked = await services.lifecycle.mark_no_show(booking.id)
    return BookingResponse(
        message="Booking marked as no-show",
        booking=BookingOut.from_record(marked, services.clock.now()),
    )


@router.patch("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str,
    data: Optional[BookingCancel] = None,
    services: Services = Depends(get_services),
    actor: Actor = Depends(require(Capability.CANCEL_RESTAURANT_BOOKING)),
):
    booking = await _load_managed(services, actor, booking_id)
    reason = data.reason if data and data.reason else "Cancelled by restaurant"
    cancelled = await services.lifecycle.cancel(booking.id, reason, actor)
    return BookingResponse(
        message="Booking cancelled successfully",
        booking=BookingOut.from_record(cancelled, services.clock.now()),
    )


# ---------------------------------------------------------------------------
# POST /admin/bookings/sweep - run the expiry sweep now
# ---------------------------------------------------------------------------


@router.post("/sweep", response_model=SweepResult)
async def run_expiry_sweep(
    services: Services = Depends(get_services),
    actor: Actor = Depends(require(Capability.RUN_SWEEPER)),
):
    """Run one expiry tick immediately instead of waiting for the next interval."""
    result = await services.sweeper.run_once()
    return SweepResult(
        scanned=result.scanned,
        expired=result.expired,
        skipped=result.skipped,
        message=None if result.ran else "A sweep is already running",
    )
