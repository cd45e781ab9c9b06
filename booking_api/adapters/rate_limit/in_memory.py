"""In-memory sliding-window store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field

from booking_api.adapters.rate_limit.base import AbstractSlidingWindowStore, WindowCount


@dataclass
class _KeyState:
    attempts: deque[float] = field(default_factory=deque)
    expires_at: float = 0.0


class InMemorySlidingWindowStore(AbstractSlidingWindowStore):
    """Sliding log of attempt timestamps per key, held in process memory.

    Each key gets a TTL equal to its window, refreshed on every record, the
    same way the Redis store expires its sorted sets. Expired keys are swept
    every ``sweep_every`` records.

    Important:
        State is not shared between workers. Use it for local development
        (``RATE_LIMIT_STORE_URL=memory://``) and tests.
    """

    def __init__(self, *, sweep_every: int = 1000) -> None:
        if sweep_every < 1:
            raise ValueError("sweep_every must be >= 1")
        self._sweep_every = sweep_every
        self._records_since_sweep = 0
        self._lock = threading.RLock()
        self._state_by_key: dict[str, _KeyState] = {}

    async def record(self, key: str, *, window_seconds: int, now: float) -> WindowCount:
        if not key:
            raise ValueError("key must be a non-empty string")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        with self._lock:
            self._records_since_sweep += 1
            if self._records_since_sweep >= self._sweep_every:
                self.sweep(now)

            state = self._state_by_key.setdefault(key, _KeyState())
            cutoff = now - window_seconds
            while state.attempts and state.attempts[0] <= cutoff:
                state.attempts.popleft()

            state.attempts.append(now)
            state.expires_at = now + window_seconds
            return WindowCount(count=len(state.attempts), oldest_at=state.attempts[0])

    def sweep(self, now: float) -> int:
        """Drop keys whose TTL has passed.

        Returns:
            Number of keys removed.
        """
        with self._lock:
            expired = [k for k, s in self._state_by_key.items() if s.expires_at <= now]
            for key in expired:
                del self._state_by_key[key]
            self._records_since_sweep = 0
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._state_by_key)
