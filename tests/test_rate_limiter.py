from __future__ import annotations

from spotibot.rate_limiter import FixedWindowRateLimiter
from spotibot.types import RateLimitPolicy


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


POLICY = RateLimitPolicy(max_calls=2, window_ms=1000)


def _call(limiter: FixedWindowRateLimiter, name: str = "a") -> tuple[bool, int]:
    allowed, retry_after = limiter.check(name, POLICY)
    if allowed:
        limiter.record_success(name)
    return allowed, retry_after


class TestFixedWindow:
    def test_third_call_denied_then_window_resets(self):
        clock = FakeClock(1000)
        limiter = FixedWindowRateLimiter(clock)
        assert _call(limiter) == (True, 0)
        clock.now = 1100
        assert _call(limiter) == (True, 0)
        clock.now = 1400
        allowed, retry_after = _call(limiter)
        assert not allowed
        assert retry_after == 600
        clock.now = 2000
        assert _call(limiter) == (True, 0)
        assert limiter.state("a").calls == 1
        assert limiter.state("a").window_start == 2000

    def test_check_alone_does_not_charge(self):
        limiter = FixedWindowRateLimiter(FakeClock())
        for _ in range(5):
            assert limiter.check("a", POLICY)[0]
        assert limiter.state("a").calls == 0

    def test_independent_windows_per_action(self):
        limiter = FixedWindowRateLimiter(FakeClock())
        _call(limiter, "a")
        _call(limiter, "a")
        assert not limiter.check("a", POLICY)[0]
        assert limiter.check("b", POLICY)[0]

    def test_retry_after_is_positive(self):
        clock = FakeClock(0)
        limiter = FixedWindowRateLimiter(clock)
        _call(limiter)
        _call(limiter)
        clock.now = 999.9
        allowed, retry_after = limiter.check("a", POLICY)
        assert not allowed
        assert retry_after >= 1

    def test_record_without_state_is_ignored(self):
        limiter = FixedWindowRateLimiter(FakeClock())
        limiter.record_success("never-checked")
        assert limiter.state("never-checked") is None

    def test_snapshot_and_reset(self):
        limiter = FixedWindowRateLimiter(FakeClock(5))
        _call(limiter, "a")
        _call(limiter, "b")
        assert limiter.snapshot() == {
            "a": {"calls": 1, "window_start": 5},
            "b": {"calls": 1, "window_start": 5},
        }
        limiter.reset("a")
        assert set(limiter.snapshot()) == {"b"}
        limiter.reset()
        assert limiter.snapshot() == {}
