"""
Tests for the sliding-window rate limiter.
"""

import pytest

from services.rate_limiter import RateLimiter


@pytest.mark.unit
class TestRateLimiter:
    """Test RateLimiter."""

    def test_allows_up_to_limit(self, rate_limiter: RateLimiter, clock) -> None:
        results = []
        for _ in range(4):
            results.append(rate_limiter.is_action_allowed("k", 3))
            clock.advance(10)

        assert results == [True, True, True, False]

    def test_rejection_is_not_recorded(self, rate_limiter: RateLimiter) -> None:
        for _ in range(5):
            rate_limiter.is_action_allowed("k", 2)

        assert rate_limiter.action_count("k") == 2

    def test_window_slides(self, rate_limiter: RateLimiter, clock) -> None:
        rate_limiter.is_action_allowed("k", 1)
        assert not rate_limiter.is_action_allowed("k", 1)

        clock.advance(60_001)

        assert rate_limiter.is_action_allowed("k", 1)

    def test_keys_are_independent(self, rate_limiter: RateLimiter) -> None:
        assert rate_limiter.is_action_allowed("a", 1)
        assert rate_limiter.is_action_allowed("b", 1)

    def test_cooldown_remaining(self, rate_limiter: RateLimiter, clock) -> None:
        assert rate_limiter.get_cooldown_remaining("k", 500) == 0

        rate_limiter.is_action_allowed("k", 10)
        clock.advance(100)

        assert rate_limiter.get_cooldown_remaining("k", 500) == 400
        clock.advance(400)
        assert rate_limiter.get_cooldown_remaining("k", 500) == 0

    def test_cooldown_check_does_not_record(self, rate_limiter: RateLimiter) -> None:
        rate_limiter.get_cooldown_remaining("k", 500)
        assert rate_limiter.action_count("k") == 0

    def test_clear(self, rate_limiter: RateLimiter) -> None:
        rate_limiter.is_action_allowed("a", 1)
        rate_limiter.is_action_allowed("b", 1)

        rate_limiter.clear("a")
        assert rate_limiter.is_action_allowed("a", 1)

        rate_limiter.clear_all()
        assert rate_limiter.is_action_allowed("b", 1)

    def test_instances_do_not_share_state(self, clock) -> None:
        first = RateLimiter(clock=clock)
        second = RateLimiter(clock=clock)

        first.is_action_allowed("k", 1)

        assert second.is_action_allowed("k", 1)
