"""
test_rate_limiter.py — Unit tests for the per-user sliding-window limiter.

A fake millisecond clock drives every test, so window expiry is exact and
no test sleeps.
"""

import threading

import pytest

from app.services.rate_limiter import SlidingWindowRateLimiter

HOUR_MS = 60 * 60 * 1000


class FakeClock:
    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def limiter(clock):
    return SlidingWindowRateLimiter(max_requests=20, window_ms=HOUR_MS, clock=clock)


class TestAdmission:
    def test_first_request_admitted_with_19_remaining(self, limiter):
        decision = limiter.admit("alice")
        assert decision.allowed is True
        assert decision.remaining == 19
        assert decision.retry_after_ms is None

    def test_remaining_counts_down_to_zero(self, limiter, clock):
        remaining = []
        for _ in range(20):
            remaining.append(limiter.admit("alice").remaining)
            clock.advance(1000)
        assert remaining == list(range(19, -1, -1))

    def test_21st_request_in_window_rejected(self, limiter, clock):
        for _ in range(20):
            assert limiter.admit("alice").allowed
            clock.advance(60_000)

        decision = limiter.admit("alice")
        assert decision.allowed is False
        assert decision.retry_after_ms > 0
        assert decision.remaining is None

    def test_retry_after_is_time_until_oldest_leaves_window(self, limiter, clock):
        start = clock.now
        for _ in range(20):
            limiter.admit("alice")
            clock.advance(60_000)  # 20 requests over 20 minutes

        decision = limiter.admit("alice")
        assert decision.retry_after_ms == pytest.approx(start + HOUR_MS - clock.now)
        assert decision.retry_after_ms == pytest.approx(40 * 60_000)

    def test_rejected_requests_do_not_extend_the_window(self, limiter, clock):
        for _ in range(20):
            limiter.admit("alice")
        first = limiter.admit("alice").retry_after_ms
        clock.advance(1000)
        second = limiter.admit("alice").retry_after_ms
        assert second == pytest.approx(first - 1000)

    def test_admitted_again_after_retry_after_elapses(self, limiter, clock):
        for _ in range(20):
            limiter.admit("alice")
        rejected = limiter.admit("alice")
        assert not rejected.allowed

        clock.advance(rejected.retry_after_ms)
        decision = limiter.admit("alice")
        assert decision.allowed is True

    def test_identities_are_independent(self, limiter):
        for _ in range(20):
            limiter.admit("alice")
        assert not limiter.admit("alice").allowed
        assert limiter.admit("bob").allowed

    def test_window_slides_one_request_at_a_time(self, limiter, clock):
        for _ in range(20):
            limiter.admit("alice")
            clock.advance(60_000)
        # 20 minutes elapsed; the first request expires at 60 minutes
        clock.advance(40 * 60_000)
        assert limiter.admit("alice").allowed
        assert not limiter.admit("alice").allowed


class TestEviction:
    def test_expired_identities_are_evicted(self, limiter, clock):
        limiter.admit("alice")
        limiter.admit("bob")
        assert limiter.tracked_identities() == 2

        clock.advance(HOUR_MS)
        limiter.admit("carol")
        assert limiter.tracked_identities() == 1

    def test_live_identity_not_evicted(self, limiter, clock):
        limiter.admit("alice")
        clock.advance(HOUR_MS / 2)
        limiter.admit("bob")
        clock.advance(HOUR_MS / 2)
        limiter.admit("carol")
        # alice's only timestamp is exactly one window old; bob's is still live
        assert limiter.tracked_identities() == 2

    def test_reset_clears_all_state(self, limiter):
        for _ in range(20):
            limiter.admit("alice")
        limiter.reset()
        assert limiter.tracked_identities() == 0
        assert limiter.admit("alice").remaining == 19


class TestConcurrency:
    def test_parallel_admits_never_exceed_quota(self):
        limiter = SlidingWindowRateLimiter(max_requests=20, window_ms=HOUR_MS)
        results = []
        barrier = threading.Barrier(50)

        def worker():
            barrier.wait()
            results.append(limiter.admit("alice").allowed)

        threads = [threading.Thread(target=worker) for _ in range(50)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 20
        assert results.count(False) == 30
