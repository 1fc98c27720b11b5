import sys

sys.path.insert(0, '.')

from api.rate_limit import FixedWindowRateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_allows_up_to_max_then_reports_retry_after():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(max_requests=3, window_s=60, clock=clock)
    assert [limiter.hit('1.1.1.1') for _ in range(3)] == [None, None, None]
    clock.now += 20
    assert limiter.hit('1.1.1.1') == 40.0


def test_addresses_are_counted_separately():
    limiter = FixedWindowRateLimiter(max_requests=1, window_s=60, clock=FakeClock())
    assert limiter.hit('a') is None
    assert limiter.hit('b') is None
    assert limiter.hit('a') is not None


def test_window_resets_after_expiry():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(max_requests=1, window_s=60, clock=clock)
    assert limiter.hit('a') is None
    assert limiter.hit('a') is not None
    clock.now += 60
    assert limiter.hit('a') is None


def test_expired_windows_are_pruned():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(max_requests=5, window_s=10, clock=clock)
    for n in range(20):
        limiter.hit(f"10.0.0.{n}")
    assert len(limiter._windows) == 20
    clock.now += 11
    limiter.hit('10.0.0.99')
    assert list(limiter._windows) == ['10.0.0.99']
