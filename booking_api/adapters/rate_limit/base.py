"""Rate limiting types and the shared-store interface.

The limiter service depends on ``AbstractSlidingWindowStore`` only, so the
Redis backend can be replaced by the in-memory one (development, tests)
without touching the HTTP layer.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass(frozen=True)
class RateLimitPolicy:
    """A named quota: at most ``limit`` requests per trailing ``window_seconds``.

    Attributes:
        name: Policy name used by the gate (e.g. ``form-submission``).
        limit: Max requests per window.
        window_seconds: Length of the trailing window.
        prefix: Store key namespace; distinct per policy.
        rejection_message: Human-readable text for the 429 body.
    """

    name: str
    limit: int
    window_seconds: int
    prefix: str
    rejection_message: str = "Too many requests. Please try again later."

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("policy name must be a non-empty string")
        if self.limit < 1:
            raise ValueError("limit must be >= 1")
        if self.window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")
        if not self.prefix:
            raise ValueError("prefix must be a non-empty string")

    def key_for(self, identifier: str) -> str:
        return f"{self.prefix}:{identifier}"


@dataclass(frozen=True)
class WindowCount:
    """Store state for one key right after recording an attempt.

    Attributes:
        count: Attempts inside the trailing window, this one included.
        oldest_at: UNIX epoch seconds of the oldest counted attempt.
    """

    count: int
    oldest_at: float


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a single rate limit check.

    Attributes:
        admitted: Whether the request may proceed.
        limit: Max requests per window for the policy.
        remaining: ``max(0, limit - count)``; never negative.
        reset_at: When the oldest counted request leaves the window (UTC).
    """

    admitted: bool
    limit: int
    remaining: int
    reset_at: datetime

    @classmethod
    def from_count(cls, policy: RateLimitPolicy, window: WindowCount) -> "RateLimitDecision":
        return cls(
            admitted=window.count <= policy.limit,
            limit=policy.limit,
            remaining=max(0, policy.limit - window.count),
            reset_at=_to_utc(window.oldest_at + policy.window_seconds),
        )

    @classmethod
    def unchecked(
        cls, policy: RateLimitPolicy, *, now: float, admitted: bool = True
    ) -> "RateLimitDecision":
        """Decision used when the store could not be consulted."""
        return cls(
            admitted=admitted,
            limit=policy.limit,
            remaining=policy.limit if admitted else 0,
            reset_at=_to_utc(now + policy.window_seconds),
        )

    def retry_after_seconds(self, now: float) -> int:
        """Whole seconds until capacity frees up, rounded up."""
        return max(0, math.ceil(self.reset_at.timestamp() - now))


def _to_utc(epoch_seconds: float) -> datetime:
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)


class AbstractSlidingWindowStore(ABC):
    """Interface for shared stores that count attempts in a trailing window."""

    @abstractmethod
    async def record(self, key: str, *, window_seconds: int, now: float) -> WindowCount:
        """Record one attempt for ``key`` and return the resulting window state.

        Implementations must do this atomically: drop attempts at or before
        ``now - window_seconds``, add this attempt, then count. Every call
        records, whether or not the caller ends up admitting the request.

        Args:
            key: Namespaced limiter key (policy prefix + client identifier).
            window_seconds: Length of the trailing window.
            now: Current UNIX time in seconds.

        Returns:
            WindowCount for the key after recording.

        Raises:
            StoreUnavailableError: If the store cannot be reached.
        """
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release connections held by the store."""
        return None
