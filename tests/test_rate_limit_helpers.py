"""Tests for client identification, header formatting and route classification."""

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from starlette.datastructures import Headers

from booking_api.adapters.rate_limit.base import RateLimitDecision
from booking_api.core.config import settings
from booking_api.core.rate_limit import (
    classify_request,
    format_headers,
    get_client_identifier,
)
from booking_api.services.rate_limiter import (
    FORM_SUBMISSION,
    GENERAL_API,
    RateLimiter,
    build_policies,
)


def _request(headers: dict[str, str]) -> SimpleNamespace:
    return SimpleNamespace(headers=Headers(headers=headers))


class TestGetClientIdentifier:
    @pytest.mark.parametrize(
        "headers,expected",
        [
            (
                {
                    "x-real-ip": "1.1.1.1",
                    "x-forwarded-for": "2.2.2.2, 10.0.0.1",
                    "cf-connecting-ip": "3.3.3.3",
                },
                "1.1.1.1",
            ),
            ({"x-forwarded-for": "2.2.2.2, 10.0.0.1", "cf-connecting-ip": "3.3.3.3"}, "2.2.2.2"),
            ({"x-real-ip": "1.1.1.1", "cf-connecting-ip": "3.3.3.3"}, "1.1.1.1"),
            ({"cf-connecting-ip": "3.3.3.3"}, "3.3.3.3"),
            ({"x-forwarded-for": " 2.2.2.2 ,10.0.0.1"}, "2.2.2.2"),
            ({"x-real-ip": "  1.1.1.1  "}, "1.1.1.1"),
            ({}, "anonymous"),
        ],
    )
    def test_header_precedence(self, headers: dict[str, str], expected: str) -> None:
        assert get_client_identifier(_request(headers)) == expected

    def test_empty_headers_fall_through(self) -> None:
        headers = {"x-real-ip": "", "x-forwarded-for": " , 10.0.0.1", "cf-connecting-ip": "3.3.3.3"}

        assert get_client_identifier(_request(headers)) == "3.3.3.3"

    def test_header_names_are_case_insensitive(self) -> None:
        assert get_client_identifier(_request({"X-Real-IP": "1.1.1.1"})) == "1.1.1.1"


class TestFormatHeaders:
    def test_exact_headers(self) -> None:
        decision = RateLimitDecision(
            admitted=True,
            limit=10,
            remaining=7,
            reset_at=datetime(2025, 1, 1, 12, 30, 15, tzinfo=timezone.utc),
        )

        assert format_headers(decision) == {
            "X-RateLimit-Limit": "10",
            "X-RateLimit-Remaining": "7",
            "X-RateLimit-Reset": "2025-01-01T12:30:15.000Z",
        }

    def test_reset_keeps_milliseconds(self) -> None:
        decision = RateLimitDecision(
            admitted=False,
            limit=3,
            remaining=0,
            reset_at=datetime(2025, 1, 1, 0, 0, 0, 250000, tzinfo=timezone.utc),
        )

        assert format_headers(decision)["X-RateLimit-Reset"] == "2025-01-01T00:00:00.250Z"


class TestClassifyRequest:
    @pytest.mark.parametrize(
        "path,method,expected",
        [
            ("/api/appointments", "POST", FORM_SUBMISSION),
            ("/api/appointments", "post", FORM_SUBMISSION),
            ("/api/appointments", "GET", GENERAL_API),
            ("/api/appointments/123", "POST", GENERAL_API),
            ("/api/health", "GET", GENERAL_API),
            ("/", "GET", None),
            ("/docs", "GET", None),
            ("/apiary", "GET", None),
        ],
    )
    def test_route_classes(
        self, limiter: RateLimiter, path: str, method: str, expected: str | None
    ) -> None:
        assert classify_request(limiter, path, method) == expected

    def test_routes_come_from_the_limiter(self) -> None:
        limiter = RateLimiter(
            None,
            build_policies(settings),
            production=True,
            form_path="/v2/bookings",
            api_prefix="/v2/",
        )

        assert classify_request(limiter, "/v2/bookings", "POST") == FORM_SUBMISSION
        assert classify_request(limiter, "/v2/health", "GET") == GENERAL_API
        assert classify_request(limiter, "/api/appointments", "POST") is None
