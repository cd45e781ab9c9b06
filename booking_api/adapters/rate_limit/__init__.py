"""Rate limiting adapters.

Shared-store backends for the sliding-window limiter. The service layer only
sees ``AbstractSlidingWindowStore``; Redis is used in production and the
in-memory store for development and tests.
"""

from booking_api.adapters.rate_limit.base import (
    AbstractSlidingWindowStore,
    RateLimitDecision,
    RateLimitPolicy,
    WindowCount,
)
from booking_api.adapters.rate_limit.factory import create_window_store
from booking_api.adapters.rate_limit.in_memory import InMemorySlidingWindowStore
from booking_api.adapters.rate_limit.redis_store import RedisSlidingWindowStore

__all__ = [
    "AbstractSlidingWindowStore",
    "InMemorySlidingWindowStore",
    "RateLimitDecision",
    "RateLimitPolicy",
    "RedisSlidingWindowStore",
    "WindowCount",
    "create_window_store",
]
