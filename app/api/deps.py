from dataclasses import dataclass
from typing import Optional
from uuid import UUID
from zoneinfo import ZoneInfo

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.actors import Actor, Capability, Role
from app.core.clock import Clock, SystemClock
from app.core.config import Settings, settings
from app.core.exceptions import Forbidden
from app.core.security import decode_token
from app.db.record_store import RecordStore
from app.schemas.booking import BookingRecord
from app.services.availability import SeatAvailabilityEngine
from app.services.booking_lifecycle import BookingLifecycleManager
from app.services.booking_queries import BookingQueries
from app.services.events import EventPublisher
from app.services.expiry_sweeper import ExpirySweeper

bearer_scheme = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------


@dataclass
class Services:
    store: RecordStore
    publisher: EventPublisher
    clock: Clock
    availability: SeatAvailabilityEngine
    lifecycle: BookingLifecycleManager
    queries: BookingQueries
    sweeper: ExpirySweeper


def build_services(
    store: RecordStore,
    publisher: EventPublisher,
    clock: Optional[Clock] = None,
    config: Settings = settings,
) -> Services:
    clock = clock or SystemClock()
    tz = ZoneInfo(config.RESTAURANT_TIMEZONE)
    lifecycle = BookingLifecycleManager(
        store,
        publisher,
        clock,
        tz,
        arrival_window_minutes=config.ARRIVAL_WINDOW_MINUTES,
        walk_in_window_minutes=config.WALK_IN_WINDOW_MINUTES,
    )
    return Services(
        store=store,
        publisher=publisher,
        clock=clock,
        availability=SeatAvailabilityEngine(
            store,
            clock,
            tz,
            slot_minutes=config.SLOT_INTERVAL_MINUTES,
            max_results=config.NEXT_AVAILABLE_MAX_RESULTS,
            max_days_ahead=config.NEXT_AVAILABLE_MAX_DAYS,
        ),
        lifecycle=lifecycle,
        queries=BookingQueries(store, clock, tz),
        sweeper=ExpirySweeper(
            store,
            lifecycle,
            clock,
            interval_seconds=config.SWEEPER_INTERVAL_SECONDS,
            batch_size=config.SWEEPER_BATCH_SIZE,
        ),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


# ---------------------------------------------------------------------------
# Authentication & capability checks
# ---------------------------------------------------------------------------


def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Actor:
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise unauthorized
    claims = decode_token(credentials.credentials)
    if claims is None:
        raise unauthorized
    try:
        restaurant_id = claims.get("restaurant_id")
        return Actor(
            user_id=UUID(claims["sub"]),
            role=Role(claims.get("role", Role.USER.value)),
            restaurant_id=UUID(restaurant_id) if restaurant_id else None,
        )
    except ValueError:
        raise unauthorized


def require(capability: Capability):
    """Dependency factory: the current actor, provided its role grants `capability`."""

    def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if not actor.can(capability):
            raise Forbidden("Not authorized to perform this action")
        return actor

    return dependency


def ensure_manages(actor: Actor, restaurant_id: UUID) -> None:
    if not actor.manages(restaurant_id):
        raise Forbidden("Not authorized for this restaurant")


def ensure_can_access(actor: Actor, booking: BookingRecord, own: Capability, staff: Capability) -> None:
    """Customers reach their own bookings; staff reach bookings at restaurants they manage."""
    if actor.can(own) and booking.user_id == actor.user_id:
        return
    if actor.can(staff) and actor.manages(booking.restaurant_id):
        return
    raise Forbidden("Not authorized to access this booking")
