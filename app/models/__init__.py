from app.models.restaurant import Restaurant, Seat, OperatingHours
from app.models.booking import Booking
