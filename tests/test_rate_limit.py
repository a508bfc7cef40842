"""Tests for the fixed-window LoginRateLimiter."""
import pytest

from utils.rate_limit import LoginRateLimiter


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return LoginRateLimiter(window_seconds=900, max_attempts=5, clock=clock)


def test_allows_up_to_max_attempts(limiter):
    for _ in range(5):
        assert limiter.check("1.2.3.4").allowed


def test_denies_after_max_attempts_with_retry_after(limiter, clock):
    for _ in range(5):
        limiter.check("1.2.3.4")
    clock.advance(100.4)

    decision = limiter.check("1.2.3.4")

    assert not decision.allowed
    # 799.6 seconds left, rounded up
    assert decision.retry_after == 800


def test_denied_attempts_do_not_extend_the_window(limiter, clock):
    for _ in range(7):
        limiter.check("1.2.3.4")
    clock.advance(900)
    assert limiter.check("1.2.3.4").allowed


def test_ips_are_counted_separately(limiter):
    for _ in range(5):
        limiter.check("1.1.1.1")
    assert not limiter.check("1.1.1.1").allowed
    assert limiter.check("2.2.2.2").allowed


def test_expired_window_starts_fresh(limiter, clock):
    for _ in range(5):
        limiter.check("1.2.3.4")
    clock.advance(901)

    assert limiter.check("1.2.3.4").allowed
    assert limiter.remaining("1.2.3.4") == 4


def test_reset_clears_the_counter(limiter):
    for _ in range(5):
        limiter.check("1.2.3.4")
    limiter.reset("1.2.3.4")

    assert limiter.check("1.2.3.4").allowed
    assert limiter.remaining("1.2.3.4") == 4


def test_remaining(limiter):
    assert limiter.remaining("9.9.9.9") == 5
    limiter.check("9.9.9.9")
    limiter.check("9.9.9.9")
    assert limiter.remaining("9.9.9.9") == 3


def test_sweep_removes_only_expired_entries(limiter, clock):
    limiter.check("old")
    clock.advance(600)
    limiter.check("new")
    clock.advance(400)

    assert limiter.sweep() == 1
    assert len(limiter) == 1
    assert limiter.remaining("new") == 4


def test_invalid_settings_are_rejected():
    with pytest.raises(ValueError):
        LoginRateLimiter(window_seconds=0)
    with pytest.raises(ValueError):
        LoginRateLimiter(max_attempts=0)


def test_sweeper_thread_starts_and_stops(limiter):
    limiter.start_sweeper(interval=0.01)
    limiter.stop_sweeper()
    assert limiter._sweeper is None
