from __future__ import annotations

from booking_api.api.routes.appointments import router as appointments_router
from booking_api.api.routes.health import router as health_router

__all__ = ["appointments_router", "health_router"]
