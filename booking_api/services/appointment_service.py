"""Booking service: turns a validated booking form into a stored appointment.

Handles:
- Duplicate detection (same email and date within a configurable window)
- Normalization (full name, "other" industry, request metadata)
- Persistence through the repository abstraction
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable

from booking_api.adapters.appointments.base import AbstractAppointmentRepository
from booking_api.core.errors import DuplicateBookingError
from booking_api.core.logging import hash_identifier
from booking_api.schemas.appointment import Appointment, BookingRequest

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AppointmentService:
    """Creates appointments from booking requests."""

    def __init__(
        self,
        repository: AbstractAppointmentRepository,
        *,
        duplicate_window: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repository = repository
        self._duplicate_window = duplicate_window
        self._clock = clock

    async def book(
        self,
        booking: BookingRequest,
        *,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> Appointment:
        """Store a new pending appointment.

        Args:
            booking: Validated booking form.
            ip_address: Client IP, if known.
            user_agent: Client user agent, if sent.

        Returns:
            The stored appointment.

        Raises:
            DuplicateBookingError: If the same email already booked the same
                date within the duplicate window.
        """
        now = self._clock()

        if await self._repository.exists_recent(
            booking.email, booking.preferred_date, since=now - self._duplicate_window
        ):
            logger.info(
                "appointment.duplicate",
                extra={
                    "email_hash": hash_identifier(booking.email),
                    "preferred_date": booking.preferred_date.isoformat(),
                },
            )
            raise DuplicateBookingError(
                code="duplicate_booking",
                message=(
                    "You already have a pending appointment for this date. "
                    "Please check your email or contact us for assistance."
                ),
                details={"preferred_date": booking.preferred_date.isoformat()},
            )

        appointment = Appointment(
            id=str(uuid.uuid4()),
            created_at=now,
            full_name=booking.full_name,
            email=booking.email,
            phone=booking.phone,
            company_name=booking.company_name,
            industry=booking.resolved_industry,
            website_url=booking.website_url,
            current_website=booking.current_website,
            project_type=booking.project_type,
            project_description=booking.project_description,
            features=booking.features,
            additional_notes=booking.additional_notes,
            referral_source=booking.referral_source,
            preferred_date=booking.preferred_date,
            preferred_time=booking.preferred_time,
            timezone=booking.timezone,
            video_call_platform=booking.resolved_video_call_platform,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        stored = await self._repository.create(appointment)

        logger.info(
            "appointment.created",
            extra={
                "appointment_id": stored.id,
                "project_type": stored.project_type,
                "feature_count": len(stored.features),
            },
        )
        return stored
