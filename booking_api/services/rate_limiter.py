"""Sliding-window rate limiter service.

Decides, per client identifier and per policy, whether a request is admitted.
All counter state lives in the shared store; the limiter itself only holds
configuration and is built once at startup.

Availability over strictness:
- No store configured, or not running in production → ``is_enabled()`` is
  False and the gate never calls ``check()``.
- Store timeout or failure → admitted when ``fail_open`` is set (default),
  rejected otherwise. Either way the failure stops here.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Iterable, Mapping

from booking_api.adapters.rate_limit.base import (
    AbstractSlidingWindowStore,
    RateLimitDecision,
    RateLimitPolicy,
)
from booking_api.core.config import Settings
from booking_api.core.errors import StoreUnavailableError
from booking_api.core.logging import hash_identifier

logger = logging.getLogger(__name__)

FORM_SUBMISSION = "form-submission"
GENERAL_API = "general-api"


def build_policies(settings: Settings) -> dict[str, RateLimitPolicy]:
    """Build the configured policies keyed by name."""

    cfg = settings.rate_limit
    policies = [
        RateLimitPolicy(
            name=FORM_SUBMISSION,
            limit=cfg.form_limit,
            window_seconds=cfg.form_window_seconds,
            prefix="ratelimit:form",
            rejection_message=(
                "You have exceeded the maximum number of booking attempts. "
                "Please try again later."
            ),
        ),
        RateLimitPolicy(
            name=GENERAL_API,
            limit=cfg.api_limit,
            window_seconds=cfg.api_window_seconds,
            prefix="ratelimit:api",
            rejection_message="You are making requests too quickly. Please slow down.",
        ),
    ]
    return {policy.name: policy for policy in policies}


class RateLimiter:
    """Per-policy, per-identifier sliding-window limiter over a shared store."""

    def __init__(
        self,
        store: AbstractSlidingWindowStore | None,
        policies: Mapping[str, RateLimitPolicy] | Iterable[RateLimitPolicy],
        *,
        production: bool,
        timeout_seconds: float = 1.0,
        fail_open: bool = True,
        form_path: str = "/api/appointments",
        api_prefix: str = "/api/",
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Shared store, or None when it is not configured.
            policies: Policies by name (or an iterable of policies).
            production: Whether the process runs in production mode.
            timeout_seconds: Upper bound for one store round trip.
            fail_open: Admit (True) or reject (False) when the store fails.
            form_path: Path whose POSTs use the form-submission policy.
            api_prefix: Paths under this prefix use the general-api policy.
            clock: Time source returning UNIX time in seconds.

        Raises:
            ValueError: If policies are missing, duplicated or the timeout is invalid.
        """
        if not isinstance(policies, Mapping):
            policy_list = list(policies)
            policies = {p.name: p for p in policy_list}
            if len(policies) != len(policy_list):
                raise ValueError("policy names must be unique")
        if not policies:
            raise ValueError("at least one policy is required")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")

        prefixes = {p.prefix for p in policies.values()}
        if len(prefixes) != len(policies):
            raise ValueError("policy prefixes must be unique")

        self._store = store
        self._policies = dict(policies)
        self._production = production
        self._timeout_seconds = timeout_seconds
        self._fail_open = fail_open
        self.form_path = form_path
        self.api_prefix = api_prefix
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: AbstractSlidingWindowStore | None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> "RateLimiter":
        return cls(
            store,
            build_policies(settings),
            production=settings.is_production,
            timeout_seconds=settings.rate_limit.timeout_seconds,
            fail_open=settings.rate_limit.fail_open,
            form_path=settings.rate_limit.form_path,
            api_prefix=settings.rate_limit.api_prefix,
            clock=clock,
        )

    @property
    def policies(self) -> Mapping[str, RateLimitPolicy]:
        return self._policies

    def now(self) -> float:
        return self._clock()

    def is_enabled(self) -> bool:
        """True only with a configured store while running in production."""
        return self._store is not None and self._production

    def get_policy(self, name: str) -> RateLimitPolicy:
        try:
            return self._policies[name]
        except KeyError:
            raise ValueError(
                f"Unknown rate limit policy: '{name}'. "
                f"Configured policies: {', '.join(sorted(self._policies))}"
            ) from None

    async def check(self, policy_name: str, identifier: str) -> RateLimitDecision:
        """Record one attempt for ``identifier`` under ``policy_name`` and decide.

        Args:
            policy_name: One of the configured policy names.
            identifier: Client identifier (usually an IP address).

        Returns:
            RateLimitDecision for this attempt.

        Raises:
            ValueError: On an unknown policy or an empty identifier.
        """
        policy = self.get_policy(policy_name)
        if not identifier:
            raise ValueError("identifier must be a non-empty string")

        now = self._clock()
        if self._store is None:
            return RateLimitDecision.unchecked(policy, now=now)

        try:
            window = await asyncio.wait_for(
                self._store.record(
                    policy.key_for(identifier),
                    window_seconds=policy.window_seconds,
                    now=now,
                ),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError:
            return self._on_store_failure(policy, now, reason="timeout")
        except StoreUnavailableError as exc:
            return self._on_store_failure(policy, now, reason=exc.code)

        decision = RateLimitDecision.from_count(policy, window)
        self._log_decision(policy, identifier, decision, window.count)
        return decision

    def _on_store_failure(
        self, policy: RateLimitPolicy, now: float, *, reason: str
    ) -> RateLimitDecision:
        logger.warning(
            "rate_limit.store_unavailable",
            extra={
                "policy": policy.name,
                "reason": reason,
                "fail_open": self._fail_open,
                "timeout_s": self._timeout_seconds,
            },
        )
        return RateLimitDecision.unchecked(policy, now=now, admitted=self._fail_open)

    def _log_decision(
        self,
        policy: RateLimitPolicy,
        identifier: str,
        decision: RateLimitDecision,
        count: int,
    ) -> None:
        fields = {
            "policy": policy.name,
            "client_hash": hash_identifier(identifier),
            "limit": decision.limit,
            "remaining": decision.remaining,
            "count": count,
            "window_s": policy.window_seconds,
        }
        if decision.admitted:
            logger.debug("rate_limit.allowed", extra=fields)
        else:
            logger.info("rate_limit.exceeded", extra=fields)

    async def aclose(self) -> None:
        if self._store is not None:
            await self._store.aclose()
