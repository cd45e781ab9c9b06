"""Rate limiting gate for the HTTP layer.

This module wires the limiter service into the request pipeline:
- ``classify_request`` picks the policy for a route (or none)
- ``get_client_identifier`` derives the per-client counter key
- ``format_headers`` renders a decision as ``X-RateLimit-*`` headers
- ``rate_limit_middleware`` admits the request or answers 429

The limiter is built once by the app factory and read from
``request.app.state.rate_limiter``; route handlers only ever see admitted
requests.
"""

from __future__ import annotations

import logging
from datetime import timezone
from typing import Any

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse

from booking_api.adapters.rate_limit.base import RateLimitDecision
from booking_api.services.rate_limiter import FORM_SUBMISSION, GENERAL_API, RateLimiter

logger = logging.getLogger(__name__)

ANONYMOUS_CLIENT = "anonymous"

# Checked in order; the first non-empty value wins.
_CLIENT_IP_HEADERS = ("x-real-ip", "x-forwarded-for", "cf-connecting-ip")


def get_client_identifier(request: Any) -> str:
    """Return the client IP used to partition rate limit counters.

    Precedence: ``x-real-ip``, then the first entry of ``x-forwarded-for``,
    then ``cf-connecting-ip``. Clients with none of them share the
    ``"anonymous"`` counter.

    Args:
        request: Anything with a case-insensitive ``headers.get``.

    Returns:
        Trimmed client identifier.
    """

    for header in _CLIENT_IP_HEADERS:
        value = request.headers.get(header)
        if not value:
            continue
        if header == "x-forwarded-for":
            value = value.split(",")[0]
        value = value.strip()
        if value:
            return value
    return ANONYMOUS_CLIENT


def format_reset(decision: RateLimitDecision) -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. ``2025-01-01T00:00:00.000Z``."""

    reset_at = decision.reset_at.astimezone(timezone.utc)
    return reset_at.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_headers(decision: RateLimitDecision) -> dict[str, str]:
    """Render the three ``X-RateLimit-*`` headers for a decision."""

    return {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": format_reset(decision),
    }


def classify_request(limiter: RateLimiter, path: str, method: str) -> str | None:
    """Return the policy name for a request, or None to bypass the limiter.

    ``POST`` to the limiter's ``form_path`` uses the form-submission policy,
    any other path under its ``api_prefix`` uses the general-api policy.
    """

    if path == limiter.form_path and method.upper() == "POST":
        return FORM_SUBMISSION
    if path.startswith(limiter.api_prefix):
        return GENERAL_API
    return None


def _too_many_requests(
    limiter: RateLimiter, policy_name: str, decision: RateLimitDecision
) -> JSONResponse:
    retry_after = decision.retry_after_seconds(limiter.now())
    policy = limiter.get_policy(policy_name)
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "error": "Too Many Requests",
            "message": policy.rejection_message,
            "retryAfter": retry_after,
        },
        headers={"Retry-After": str(retry_after), **format_headers(decision)},
    )


async def rate_limit_middleware(request: Request, call_next) -> Response:
    """HTTP middleware enforcing the per-route rate limit policies.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        The handler's response with ``X-RateLimit-*`` headers, a 429 response
        when the client is over its quota, or the untouched handler response
        when the route is not limited or the limiter is disabled.
    """

    limiter: RateLimiter | None = getattr(request.app.state, "rate_limiter", None)
    if limiter is None or not limiter.is_enabled():
        return await call_next(request)

    policy_name = classify_request(limiter, request.url.path, request.method)
    if policy_name is None:
        return await call_next(request)

    decision = await limiter.check(policy_name, get_client_identifier(request))

    if not decision.admitted:
        return _too_many_requests(limiter, policy_name, decision)

    response: Response = await call_next(request)
    response.headers.update(format_headers(decision))
    return response
