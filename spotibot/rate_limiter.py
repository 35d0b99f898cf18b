"""Fixed-window per-action rate limiter -- zero external dependencies."""
from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from spotibot.types import RateLimitPolicy


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


@dataclass
class RateLimitState:
    calls: int = 0
    window_start: float = 0.0


class FixedWindowRateLimiter:
    """Per-action call counters over fixed windows.

    Admission (check) and charging (record_success) are separate so the
    engine can charge only after a successful execution. Counters live in
    process memory; they are not shared across processes.
    """

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock or _monotonic_ms
        self._states: dict[str, RateLimitState] = {}

    def check(self, name: str, policy: RateLimitPolicy) -> tuple[bool, int]:
        """Return (allowed, retry_after_ms). retry_after_ms is 0 when allowed."""
        now = self._clock()
        state = self._states.get(name)
        if state is None:
            self._states[name] = RateLimitState(calls=0, window_start=now)
            return True, 0

        if now - state.window_start >= policy.window_ms:
            state.calls = 0
            state.window_start = now

        if state.calls >= policy.max_calls:
            retry_after = policy.window_ms - (now - state.window_start)
            return False, max(1, int(retry_after))
        return True, 0

    def record_success(self, name: str) -> None:
        state = self._states.get(name)
        if state is not None:
            state.calls += 1

    def state(self, name: str) -> RateLimitState | None:
        return self._states.get(name)

    def snapshot(self) -> dict[str, dict[str, float]]:
        return {
            name: {"calls": s.calls, "window_start": s.window_start}
            for name, s in self._states.items()
        }

    def reset(self, name: str = "") -> None:
        """Reset one action's counter, or all of them."""
        if name:
            self._states.pop(name, None)
        else:
            self._states.clear()
