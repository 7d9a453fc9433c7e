"""
API Module Initialization

Exports the HTTP routers for use by the application.
"""

from agenda.api.routes import get_booking_service, router as scheduling_router

__all__ = [
    "scheduling_router",
    "get_booking_service",
]
