"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It pins APP_ENV to testing and clears store credentials so the app built at
import time never talks to a real Redis.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.pop("RATE_LIMIT_STORE_URL", None)
os.environ.pop("RATE_LIMIT_STORE_TOKEN", None)
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import date, timedelta
from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient

from booking_api.adapters.appointments.in_memory import InMemoryAppointmentRepository
from booking_api.adapters.rate_limit.in_memory import InMemorySlidingWindowStore
from booking_api.core.app_factory import create_app
from booking_api.core.config import settings
from booking_api.services.appointment_service import AppointmentService
from booking_api.services.rate_limiter import RateLimiter, build_policies

START_TIME = 1_700_000_000.0


class FakeClock:
    """Controllable time source returning UNIX seconds."""

    def __init__(self, start: float = START_TIME) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemorySlidingWindowStore:
    return InMemorySlidingWindowStore()


@pytest.fixture
def limiter(store: InMemorySlidingWindowStore, clock: FakeClock) -> RateLimiter:
    """Enabled limiter (production mode) with the default policies."""
    return RateLimiter(store, build_policies(settings), production=True, clock=clock)


@pytest.fixture
def appointment_repository() -> InMemoryAppointmentRepository:
    return InMemoryAppointmentRepository()


@pytest.fixture
def appointment_service(
    appointment_repository: InMemoryAppointmentRepository,
) -> AppointmentService:
    return AppointmentService(appointment_repository)


@pytest.fixture
def client(limiter: RateLimiter, appointment_service: AppointmentService) -> TestClient:
    app = create_app(rate_limiter=limiter, appointment_service=appointment_service)
    return TestClient(app)


@pytest.fixture
def booking_payload() -> Callable[..., dict[str, Any]]:
    """Factory for valid booking bodies; override any field via kwargs."""

    def _make(**overrides: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "first_name": "Ada",
            "last_name": "Lovelace",
            "email": "ada@example.com",
            "phone": "+1 555 0100",
            "company_name": "Analytical Engines Ltd",
            "industry": "technology",
            "industry_other": "",
            "website_url": "https://example.com",
            "current_website": True,
            "project_type": "website-redesign",
            "project_description": "Refresh the marketing site and add online booking.",
            "features": ["booking", "blog"],
            "additional_notes": "",
            "referral_source": "google-search",
            "preferred_date": (date.today() + timedelta(days=7)).isoformat(),
            "preferred_time": "10am-11am",
            "timezone": "America/New_York",
            "video_call_platform": "zoom",
            "video_call_platform_other": "",
            "website": "",
        }
        payload.update(overrides)
        return payload

    return _make
