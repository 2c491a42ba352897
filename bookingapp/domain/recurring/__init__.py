"""Recurring bookings domain - series creation, occurrence expansion and completion tracking"""

from .router import bookings_router, provider_router, router

__all__ = ["router", "bookings_router", "provider_router"]
