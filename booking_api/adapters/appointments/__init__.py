"""Appointment persistence adapters.

The booking service talks to storage through ``AbstractAppointmentRepository``;
the hosted database sits behind it in deployments, the in-memory repository
covers development and tests.
"""

from booking_api.adapters.appointments.base import AbstractAppointmentRepository
from booking_api.adapters.appointments.in_memory import InMemoryAppointmentRepository

__all__ = [
    "AbstractAppointmentRepository",
    "InMemoryAppointmentRepository",
]
