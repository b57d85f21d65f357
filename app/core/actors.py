import enum
from dataclasses import dataclass
from typing import Optional
from uuid import UUID


class Role(str, enum.Enum):
    USER = "user"
    SUBADMIN = "subadmin"
    ADMIN = "admin"


class Capability(str, enum.Enum):
    BOOK = "book"
    VIEW_OWN_BOOKINGS = "view_own_bookings"
    CANCEL_OWN_BOOKING = "cancel_own_booking"
    VIEW_RESTAURANT_BOOKINGS = "view_restaurant_bookings"
    CANCEL_RESTAURANT_BOOKING = "cancel_restaurant_booking"
    VERIFY_ARRIVAL = "verify_arrival"
    COMPLETE_BOOKING = "complete_booking"
    MARK_NO_SHOW = "mark_no_show"
    CREATE_WALK_IN = "create_walk_in"
    ANY_RESTAURANT = "any_restaurant"
    RUN_SWEEPER = "run_sweeper"


_STAFF = {
    Capability.VIEW_RESTAURANT_BOOKINGS,
    Capability.CANCEL_RESTAURANT_BOOKING,
    Capability.VERIFY_ARRIVAL,
    Capability.COMPLETE_BOOKING,
    Capability.MARK_NO_SHOW,
    Capability.CREATE_WALK_IN,
}

ROLE_CAPABILITIES = {
    Role.USER: frozenset({
        Capability.BOOK,
        Capability.VIEW_OWN_BOOKINGS,
        Capability.CANCEL_OWN_BOOKING,
    }),
    Role.SUBADMIN: frozenset(_STAFF),
    Role.ADMIN: frozenset(_STAFF | {Capability.ANY_RESTAURANT, Capability.RUN_SWEEPER}),
}


@dataclass(frozen=True)
class Actor:
    """An authenticated caller. The booking core trusts it as already authorized."""

    user_id: UUID
    role: Role = Role.USER
    restaurant_id: Optional[UUID] = None

    def can(self, capability: Capability) -> bool:
        return capability in ROLE_CAPABILITIES.get(self.role, frozenset())

    def manages(self, restaurant_id: UUID) -> bool:
        if self.can(Capability.ANY_RESTAURANT):
            return True
        return self.restaurant_id is not None and self.restaurant_id == restaurant_id
