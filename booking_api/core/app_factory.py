"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) and
builds the long-lived collaborators (rate limiter, booking service) exactly
once per process. Tests pass their own collaborators instead.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator

from fastapi import FastAPI

from booking_api.adapters.appointments.in_memory import InMemoryAppointmentRepository
from booking_api.adapters.rate_limit.factory import create_window_store
from booking_api.api.routes import appointments_router, health_router
from booking_api.core.config import settings
from booking_api.core.exception_handlers import setup_exception_handlers
from booking_api.core.logging import configure_logging
from booking_api.core.middleware import request_id_middleware
from booking_api.core.rate_limit import rate_limit_middleware
from booking_api.services.appointment_service import AppointmentService
from booking_api.services.rate_limiter import RateLimiter


def build_rate_limiter() -> RateLimiter:
    """Build the limiter from settings; without a store it stays disabled."""
    return RateLimiter.from_settings(settings, create_window_store(settings.rate_limit))


def build_appointment_service() -> AppointmentService:
    return AppointmentService(
        InMemoryAppointmentRepository(),
        duplicate_window=timedelta(hours=settings.app.duplicate_window_hours),
    )


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    await app.state.rate_limiter.aclose()


def create_app(
    *,
    rate_limiter: RateLimiter | None = None,
    appointment_service: AppointmentService | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        rate_limiter: Limiter to use; built from settings when omitted.
        appointment_service: Booking service; built from settings when omitted.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Booking API",
        description=(
            "Appointment booking endpoint for the marketing site, guarded by "
            "per-client sliding-window rate limits (3 bookings per hour, "
            "10 API requests per minute)."
        ),
        version="0.1.0",
        lifespan=_lifespan,
        debug=settings.app.debug,
    )

    app.state.rate_limiter = rate_limiter or build_rate_limiter()
    app.state.appointment_service = appointment_service or build_appointment_service()

    # Middleware: the last registered runs first, so request ids wrap 429s too
    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(appointments_router, prefix="/api")
    app.include_router(health_router, prefix="/api")

    return app
