import pytest

from profileapi.core.rate_limit import SlidingWindowRateLimiter


@pytest.fixture
def limiter(clock):
    return SlidingWindowRateLimiter(window_seconds=3600, max_requests=1, clock=clock)


class TestSlidingWindowRateLimiter:
    def test_second_attempt_inside_window_is_rejected(self, limiter, clock):
        assert limiter.is_allowed("anon-1") is True

        clock.advance(minutes=59)
        assert limiter.is_allowed("anon-1") is False

    def test_attempt_allowed_once_window_passes(self, limiter, clock):
        assert limiter.is_allowed("anon-1")

        clock.advance(hours=1)
        assert limiter.is_allowed("anon-1")

    def test_rejected_attempts_do_not_extend_the_window(self, limiter, clock):
        limiter.is_allowed("anon-1")
        clock.advance(minutes=30)
        assert not limiter.is_allowed("anon-1")

        clock.advance(minutes=30)
        assert limiter.is_allowed("anon-1")

    def test_keys_are_independent(self, limiter):
        assert limiter.is_allowed("anon-1")
        assert limiter.is_allowed("anon-2")
        assert not limiter.is_allowed("anon-1")

    def test_multiple_attempts_per_window(self, clock):
        limiter = SlidingWindowRateLimiter(window_seconds=60, max_requests=3, clock=clock)

        assert [limiter.is_allowed("k") for _ in range(4)] == [True, True, True, False]

        clock.advance(seconds=60)
        assert limiter.is_allowed("k")

    def test_retry_after(self, limiter, clock):
        assert limiter.retry_after("anon-1") == 0

        limiter.is_allowed("anon-1")
        clock.advance(minutes=10)

        assert limiter.retry_after("anon-1") == 3000

    def test_expired_keys_are_dropped(self, limiter, clock):
        for i in range(1000):
            limiter.is_allowed(f"anon-{i}")
        assert len(limiter) == 1000

        clock.advance(days=2)
        limiter.is_allowed("anon-new")

        assert len(limiter) == 1

    def test_live_keys_survive_a_sweep(self, limiter, clock):
        limiter.is_allowed("old")
        clock.advance(minutes=50)
        limiter.is_allowed("recent")
        clock.advance(minutes=20)

        limiter.is_allowed("new")

        assert len(limiter) == 2
        assert not limiter.is_allowed("recent")

    def test_reset(self, limiter):
        limiter.is_allowed("anon-1")
        limiter.reset()

        assert limiter.is_allowed("anon-1")

    def test_rejects_invalid_configuration(self):
        with pytest.raises(ValueError):
            SlidingWindowRateLimiter(window_seconds=0, max_requests=1)
