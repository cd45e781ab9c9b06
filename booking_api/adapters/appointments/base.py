from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime

from booking_api.schemas.appointment import Appointment


class AbstractAppointmentRepository(ABC):
    """Interface for appointment storage."""

    @abstractmethod
    async def create(self, appointment: Appointment) -> Appointment:
        """Persist a new appointment and return the stored record."""
        ...

    @abstractmethod
    async def exists_recent(self, email: str, preferred_date: date, *, since: datetime) -> bool:
        """Whether an appointment for ``email`` on ``preferred_date`` was created after ``since``."""
        ...
