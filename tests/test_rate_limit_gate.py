"""HTTP tests for the rate-limit gate in front of the API routes."""

from typing import Any, Callable
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from booking_api.adapters.appointments.in_memory import InMemoryAppointmentRepository
from booking_api.adapters.rate_limit.base import AbstractSlidingWindowStore
from booking_api.adapters.rate_limit.in_memory import InMemorySlidingWindowStore
from booking_api.core.app_factory import create_app
from booking_api.core.config import settings
from booking_api.core.errors import StoreUnavailableError
from booking_api.services.rate_limiter import RateLimiter, build_policies

CLIENT = {"X-Real-IP": "1.2.3.4"}
RATE_LIMIT_HEADERS = ("X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset")


def _book(client: TestClient, payload: dict[str, Any], headers: dict[str, str] = CLIENT):
    return client.post("/api/appointments", json=payload, headers=headers)


class TestFormSubmissionPolicy:
    def test_fourth_booking_in_an_hour_is_rejected(
        self,
        client: TestClient,
        clock,
        booking_payload: Callable[..., dict[str, Any]],
    ) -> None:
        for i in range(3):
            response = _book(client, booking_payload(email=f"client{i}@example.com"))
            assert response.status_code == 201
            assert response.headers["X-RateLimit-Limit"] == "3"
            assert response.headers["X-RateLimit-Remaining"] == str(2 - i)

        blocked = _book(client, booking_payload(email="client3@example.com"))

        assert blocked.status_code == 429
        body = blocked.json()
        assert body["error"] == "Too Many Requests"
        assert "booking attempts" in body["message"]
        assert body["retryAfter"] > 0
        assert blocked.headers["Retry-After"] == str(body["retryAfter"])
        for header in RATE_LIMIT_HEADERS:
            assert header in blocked.headers
        assert blocked.headers["X-RateLimit-Remaining"] == "0"

        clock.advance(3600)

        assert _book(client, booking_payload(email="client4@example.com")).status_code == 201

    def test_rejected_request_never_reaches_handler(
        self,
        client: TestClient,
        appointment_repository: InMemoryAppointmentRepository,
        booking_payload: Callable[..., dict[str, Any]],
    ) -> None:
        for i in range(4):
            _book(client, booking_payload(email=f"client{i}@example.com"))

        assert len(appointment_repository) == 3

    def test_clients_are_limited_independently(
        self,
        client: TestClient,
        booking_payload: Callable[..., dict[str, Any]],
    ) -> None:
        for i in range(3):
            _book(client, booking_payload(email=f"client{i}@example.com"))
        assert _book(client, booking_payload(email="late@example.com")).status_code == 429

        other = _book(
            client,
            booking_payload(email="other@example.com"),
            headers={"X-Forwarded-For": "9.9.9.9, 10.0.0.1"},
        )

        assert other.status_code == 201


class TestGeneralApiPolicy:
    def test_eleventh_request_in_a_minute_is_rejected(self, client: TestClient, clock) -> None:
        for _ in range(10):
            response = client.get("/api/health", headers=CLIENT)
            assert response.status_code == 200
            assert response.headers["X-RateLimit-Limit"] == "10"

        blocked = client.get("/api/health", headers=CLIENT)

        assert blocked.status_code == 429
        assert blocked.json()["message"] == "You are making requests too quickly. Please slow down."
        assert 0 < blocked.json()["retryAfter"] <= 60

        clock.advance(60)
        assert client.get("/api/health", headers=CLIENT).status_code == 200

    def test_non_post_booking_requests_use_general_policy(self, client: TestClient) -> None:
        response = client.get("/api/appointments", headers=CLIENT)

        assert response.status_code == 405
        assert response.headers["X-RateLimit-Limit"] == "10"

    def test_booking_and_api_budgets_are_separate(
        self,
        client: TestClient,
        booking_payload: Callable[..., dict[str, Any]],
    ) -> None:
        for _ in range(10):
            client.get("/api/health", headers=CLIENT)
        assert client.get("/api/health", headers=CLIENT).status_code == 429

        assert _book(client, booking_payload()).status_code == 201


class TestBypass:
    def test_paths_outside_api_are_not_limited(self, client: TestClient, store) -> None:
        for _ in range(15):
            response = client.get("/openapi.json", headers=CLIENT)
            assert response.status_code == 200
            assert "X-RateLimit-Limit" not in response.headers

        assert len(store) == 0

    @pytest.mark.parametrize("production,has_store", [(False, True), (True, False)])
    def test_disabled_limiter_never_checks(self, production: bool, has_store: bool) -> None:
        store = None
        if has_store:
            store = Mock(spec=AbstractSlidingWindowStore)
            store.record = AsyncMock()
        limiter = RateLimiter(store, build_policies(settings), production=production)
        limiter.check = AsyncMock()
        client = TestClient(create_app(rate_limiter=limiter))

        for _ in range(25):
            response = client.get("/api/health", headers=CLIENT)
            assert response.status_code == 200
            assert "X-RateLimit-Limit" not in response.headers

        limiter.check.assert_not_awaited()
        if store is not None:
            store.record.assert_not_awaited()


class TestStoreFailure:
    def _client(self, *, fail_open: bool) -> TestClient:
        store = Mock(spec=AbstractSlidingWindowStore)
        store.record = AsyncMock(
            side_effect=StoreUnavailableError(code="rate_limit_store_unavailable", message="down")
        )
        limiter = RateLimiter(
            store, build_policies(settings), production=True, fail_open=fail_open
        )
        return TestClient(create_app(rate_limiter=limiter))

    def test_fail_open_admits(self) -> None:
        client = self._client(fail_open=True)

        response = client.get("/api/health", headers=CLIENT)

        assert response.status_code == 200
        assert response.headers["X-RateLimit-Remaining"] == "10"

    def test_fail_closed_rejects(self) -> None:
        client = self._client(fail_open=False)

        response = client.get("/api/health", headers=CLIENT)

        assert response.status_code == 429
        assert response.json()["retryAfter"] > 0


def test_rejections_carry_request_id(client: TestClient) -> None:
    for _ in range(10):
        client.get("/api/health", headers=CLIENT)

    blocked = client.get("/api/health", headers={**CLIENT, "X-Request-ID": "req-429"})

    assert blocked.status_code == 429
    assert blocked.headers["X-Request-ID"] == "req-429"


def test_anonymous_clients_share_a_counter(limiter: RateLimiter) -> None:
    client = TestClient(create_app(rate_limiter=limiter))

    for _ in range(10):
        client.get("/api/health")

    assert client.get("/api/health").status_code == 429
    assert client.get("/api/health", headers=CLIENT).status_code == 200


def test_memory_store_from_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "app_env", "production")
    monkeypatch.setattr(settings.rate_limit, "store_url", "memory://")
    monkeypatch.setattr(settings.rate_limit, "store_token", "local")

    client = TestClient(create_app())

    assert client.app.state.rate_limiter.is_enabled() is True
    assert isinstance(client.app.state.rate_limiter._store, InMemorySlidingWindowStore)
    assert client.get("/api/health").headers["X-RateLimit-Limit"] == "10"


def test_routes_are_classified_by_the_injected_limiter(
    store: InMemorySlidingWindowStore,
    clock,
    booking_payload: Callable[..., dict[str, Any]],
) -> None:
    limiter = RateLimiter(
        store,
        build_policies(settings),
        production=True,
        form_path="/api/bookings",
        clock=clock,
    )
    client = TestClient(create_app(rate_limiter=limiter))

    response = _book(client, booking_payload())

    assert response.status_code == 201
    assert response.headers["X-RateLimit-Limit"] == "10"
