"""Factory for the shared rate-limit store."""

from __future__ import annotations

import logging

from booking_api.adapters.rate_limit.base import AbstractSlidingWindowStore
from booking_api.adapters.rate_limit.in_memory import InMemorySlidingWindowStore
from booking_api.adapters.rate_limit.redis_store import RedisSlidingWindowStore
from booking_api.core.config import RateLimitSettings
from booking_api.core.errors import ValidationAppError

logger = logging.getLogger(__name__)

MEMORY_SCHEME = "memory://"


def create_window_store(cfg: RateLimitSettings) -> AbstractSlidingWindowStore | None:
    """Build the store described by settings, or None when it is not configured.

    A missing URL or token is not an error: it means rate limiting is off.

    Raises:
        ValidationAppError: If the URL scheme is not supported.
    """
    if not cfg.store_configured:
        logger.info(
            "rate_limit.store_not_configured",
            extra={
                "has_url": bool(cfg.store_url),
                "has_token": bool(cfg.store_token),
            },
        )
        return None

    url = cfg.store_url or ""

    if url.startswith(MEMORY_SCHEME):
        logger.warning("rate_limit.store_in_memory", extra={"scope": "process"})
        return InMemorySlidingWindowStore()

    if url.startswith(("redis://", "rediss://", "unix://")):
        return RedisSlidingWindowStore.from_url(
            url,
            token=cfg.store_token,
            timeout_seconds=cfg.timeout_seconds,
        )

    raise ValidationAppError(
        code="rate_limit_store_unsupported",
        message=(
            "Unsupported rate limit store URL. "
            "Supported schemes: redis://, rediss://, unix://, memory://"
        ),
    )
