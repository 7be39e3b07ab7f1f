"""
Tests for the sliding-window request throttle.
"""

from web.throttle import SlidingWindowThrottle


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestSlidingWindowThrottle:
    """Tests for SlidingWindowThrottle."""

    def test_limit_per_identifier(self):
        throttle = SlidingWindowThrottle(limit=2, window_seconds=60, clock=FakeClock())

        assert throttle.allow("10.0.0.1")
        assert throttle.allow("10.0.0.1")
        assert not throttle.allow("10.0.0.1")
        assert throttle.allow("10.0.0.2")

    def test_window_slides(self):
        clock = FakeClock()
        throttle = SlidingWindowThrottle(limit=1, window_seconds=60, clock=clock)

        assert throttle.allow("a")
        clock.now = 30
        assert not throttle.allow("a")
        clock.now = 61
        assert throttle.allow("a")

    def test_reset(self):
        throttle = SlidingWindowThrottle(limit=1, window_seconds=60, clock=FakeClock())
        throttle.allow("a")

        throttle.reset()

        assert throttle.allow("a")

    def test_expired_identifiers_are_evicted(self):
        clock = FakeClock()
        throttle = SlidingWindowThrottle(limit=5, window_seconds=1, clock=clock)
        for n in range(1000):
            throttle.allow(f"10.0.{n // 256}.{n % 256}")
        assert throttle.tracked() == 1000

        clock.now = 100
        assert throttle.allow("192.168.1.1")

        assert throttle.tracked() == 1

    def test_active_identifiers_survive_sweep(self):
        clock = FakeClock()
        throttle = SlidingWindowThrottle(limit=1, window_seconds=10, clock=clock)
        throttle.allow("old")
        clock.now = 9
        throttle.allow("busy")

        clock.now = 12
        throttle.allow("new")

        assert throttle.tracked() == 2
        assert not throttle.allow("busy")
