from fastapi import APIRouter

# Public - bookings
from app.api.v1.public.bookings import router as bookings_router

# Public - seat map / availability
from app.api.v1.public.availability import router as availability_router

# Public - real-time restaurant rooms
from app.api.v1.public.realtime import router as realtime_router

# Admin / staff
from app.api.v1.admin.bookings import (
    router as admin_bookings_router,
    restaurant_router as admin_restaurant_bookings_router,
)

api_router = APIRouter()

# --- Public: bookings ---
api_router.include_router(bookings_router)

# --- Public: availability & realtime ---
api_router.include_router(availability_router)
api_router.include_router(realtime_router)

# --- Admin ---
api_router.include_router(admin_bookings_router)
api_router.include_router(admin_restaurant_bookings_router)
