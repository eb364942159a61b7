"""Tests for narrative_radar.core.retry strategies."""

import pytest

from narrative_radar.core.retry import LinearBackoff, NoRetry


class TestLinearBackoff:
    def test_delay_grows_linearly(self):
        strategy = LinearBackoff(max_retries=3, base_delay=1.5)
        assert [strategy.next_delay(a) for a in (1, 2, 3)] == [1.5, 3.0, 4.5]

    def test_delay_capped(self):
        strategy = LinearBackoff(base_delay=10.0, max_delay=15.0)
        assert strategy.next_delay(3) == 15.0

    def test_attempt_below_one_treated_as_first(self):
        assert LinearBackoff(base_delay=2.0).next_delay(0) == 2.0

    @pytest.mark.parametrize(("done", "expected"), [(0, True), (1, True), (2, False), (3, False)])
    def test_cap_counts_additional_attempts(self, done, expected):
        assert LinearBackoff(max_retries=2).should_retry(done) is expected


class TestNoRetry:
    def test_never(self):
        strategy = NoRetry()
        assert strategy.should_retry(0) is False
        assert strategy.next_delay(1) == 0.0
