import uuid
from sqlalchemy import Column, String, Boolean, DECIMAL, Integer, ForeignKey, Text, Date, Index, Uuid, text
from sqlalchemy.orm import relationship
from app.db.session import Base
from app.db.types import UTCDateTime
from app.utils.timeslots import utcnow

# At most one active booking per seat and slot. Partial index so cancelled,
# completed and no-show rows never block a new reservation.
ACTIVE_SLOT_PREDICATE = text("status IN ('confirmed', 'arrived')")

class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        Index(
            "uq_bookings_active_slot",
            "restaurant_id", "seat_number", "booking_date", "booking_time",
            unique=True,
            postgresql_where=ACTIVE_SLOT_PREDICATE,
            sqlite_where=ACTIVE_SLOT_PREDICATE,
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    booking_id = Column(String(32), unique=True, nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    restaurant_id = Column(Uuid(as_uuid=True), ForeignKey("restaurants.id"), nullable=False, index=True)
    verified_by = Column(Uuid(as_uuid=True), nullable=True)
    seat_number = Column(String(20), nullable=False)
    seat_type = Column(String(20), nullable=False)
    party_size = Column(Integer, nullable=False)
    booking_date = Column(Date, nullable=False, index=True)
    booking_time = Column(String(5), nullable=False) # HH:MM
    status = Column(String(20), default="confirmed", index=True) # pending, confirmed, arrived, completed, cancelled, no-show
    arrival_deadline = Column(UTCDateTime, nullable=False, index=True)
    actual_arrival_time = Column(UTCDateTime, nullable=True)
    verified = Column(Boolean, default=False, nullable=False)
    verification_time = Column(UTCDateTime, nullable=True)
    special_requests = Column(String(200), nullable=True)
    contact_phone = Column(String(10), nullable=False)
    customer_name = Column(String(100), nullable=True)
    total_amount = Column(DECIMAL(10, 2), nullable=False, default=0)
    payment_status = Column(String(20), default="pending") # pending, paid, refunded
    cancel_reason = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)
    is_walk_in = Column(Boolean, default=False)
    cancelled_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    restaurant = relationship("Restaurant")
