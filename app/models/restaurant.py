import uuid
from sqlalchemy import Column, String, Boolean, Integer, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from app.db.session import Base
from app.db.types import UTCDateTime
from app.utils.timeslots import utcnow

class Restaurant(Base):
    __tablename__ = "restaurants"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    owner_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    is_active = Column(Boolean, default=True, index=True)
    created_at = Column(UTCDateTime, default=utcnow)

    # Relationships
    seats = relationship(
        "Seat",
        back_populates="restaurant",
        cascade="all, delete-orphan",
        order_by="Seat.position_index",
    )
    operating_hours = relationship(
        "OperatingHours", back_populates="restaurant", cascade="all, delete-orphan"
    )

class Seat(Base):
    __tablename__ = "seats"
    __table_args__ = (
        UniqueConstraint("restaurant_id", "seat_number", name="uq_seats_restaurant_seat_number"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid(as_uuid=True), ForeignKey("restaurants.id"), nullable=False, index=True)
    seat_number = Column(String(20), nullable=False)
    seat_type = Column(String(20), nullable=False) # table-2, table-4, table-6, bar, counter
    is_available = Column(Boolean, default=True) # cache only, bookings are the source of truth
    position_x = Column(Integer, nullable=False, default=0)
    position_y = Column(Integer, nullable=False, default=0)
    position_index = Column(Integer, nullable=False, default=0) # keeps the layout order

    restaurant = relationship("Restaurant", back_populates="seats")

class OperatingHours(Base):
    __tablename__ = "operating_hours"
    __table_args__ = (
        UniqueConstraint("restaurant_id", "weekday", name="uq_operating_hours_restaurant_weekday"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid(as_uuid=True), ForeignKey("restaurants.id"), nullable=False, index=True)
    weekday = Column(String(10), nullable=False) # monday .. sunday
    open = Column(String(5), nullable=True)
    close = Column(String(5), nullable=True)
    is_closed = Column(Boolean, default=False)

    restaurant = relationship("Restaurant", back_populates="operating_hours")
