import pytest

from crypto_proxy.ratelimit.fixed_window import FixedWindowRateLimiter


class FakeClock:
    def __init__(self, now: float = 5_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_hundred_admitted_then_rejected():
    limiter = FixedWindowRateLimiter(limit=100, window_seconds=900, clock=FakeClock())
    decisions = [limiter.allow("1.2.3.4") for _ in range(100)]
    assert all(d.admitted for d in decisions)
    assert decisions[-1].remaining == 0

    rejected = limiter.allow("1.2.3.4")
    assert rejected.admitted is False
    assert rejected.remaining == 0
    assert limiter.status("1.2.3.4").remaining == 0


def test_window_resets_after_duration():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(limit=2, window_seconds=900, clock=clock)
    limiter.allow("c")
    limiter.allow("c")
    assert limiter.allow("c").admitted is False

    clock.now += 899
    assert limiter.allow("c").admitted is False

    clock.now += 1
    decision = limiter.allow("c")
    assert decision.admitted is True
    assert decision.remaining == 1
    assert decision.reset_at == clock.now + 900


def test_identities_are_independent():
    limiter = FixedWindowRateLimiter(limit=1, window_seconds=60, clock=FakeClock())
    assert limiter.allow("a").admitted is True
    assert limiter.allow("a").admitted is False
    assert limiter.allow("b").admitted is True


def test_rejections_do_not_grow_the_counter():
    limiter = FixedWindowRateLimiter(limit=3, window_seconds=60, clock=FakeClock())
    for _ in range(10):
        limiter.allow("x")
    assert limiter.status("x").remaining == 0
    assert limiter.snapshot()["limited_clients"] == 1


def test_headers_and_retry_after():
    clock = FakeClock(now=100.0)
    limiter = FixedWindowRateLimiter(limit=1, window_seconds=900, clock=clock)
    decision = limiter.allow("x")
    assert decision.headers() == {
        "X-RateLimit-Limit": "1",
        "X-RateLimit-Remaining": "0",
        "X-RateLimit-Reset": "1000000",
    }
    clock.now += 300
    assert limiter.allow("x").retry_after_seconds(clock.now) == 600


def test_closed_windows_are_swept():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(limit=5, window_seconds=900, clock=clock)
    for i in range(10_000):
        limiter.allow(f"10.0.{i // 256}.{i % 256}")
    assert limiter.snapshot()["tracked_clients"] == 10_000

    clock.now += 900
    limiter.allow("fresh")

    snapshot = limiter.snapshot()
    assert snapshot["tracked_clients"] == 1
    assert snapshot["active_clients"] == 1


def test_sweep_drops_only_closed_windows():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(limit=5, window_seconds=60, clock=clock)
    limiter.allow("old")
    clock.now += 30
    limiter.allow("new")
    clock.now += 30
    limiter.allow("newer")
    assert limiter.snapshot()["tracked_clients"] == 2
    assert limiter.status("new").remaining == 4


def test_rejects_bad_configuration():
    with pytest.raises(ValueError):
        FixedWindowRateLimiter(limit=0)
    with pytest.raises(ValueError):
        FixedWindowRateLimiter(window_seconds=0)
