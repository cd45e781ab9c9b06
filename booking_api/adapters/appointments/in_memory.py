"""In-memory appointment repository (per-process, not durable)."""

from __future__ import annotations

import threading
from datetime import date, datetime

from booking_api.adapters.appointments.base import AbstractAppointmentRepository
from booking_api.schemas.appointment import Appointment


class InMemoryAppointmentRepository(AbstractAppointmentRepository):
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._by_id: dict[str, Appointment] = {}

    async def create(self, appointment: Appointment) -> Appointment:
        with self._lock:
            if appointment.id in self._by_id:
                raise ValueError(f"appointment {appointment.id} already exists")
            self._by_id[appointment.id] = appointment
            return appointment

    async def exists_recent(self, email: str, preferred_date: date, *, since: datetime) -> bool:
        with self._lock:
            return any(
                a.email == email and a.preferred_date == preferred_date and a.created_at >= since
                for a in self._by_id.values()
            )

    def get(self, appointment_id: str) -> Appointment | None:
        with self._lock:
            return self._by_id.get(appointment_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_id)
