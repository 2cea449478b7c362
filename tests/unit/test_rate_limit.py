"""Unit tests for the fixed-window rate limiter"""

import pytest
from treasury_engine.api.rate_limit import RateLimiter


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_allows_up_to_limit_then_blocks():
    limiter = RateLimiter(3, 60, clock=FakeClock())

    assert [limiter.allow("alice") for _ in range(4)] == [True, True, True, False]


def test_keys_are_independent():
    limiter = RateLimiter(1, 60, clock=FakeClock())

    assert limiter.allow("alice")
    assert limiter.allow("bob")
    assert not limiter.allow("alice")


def test_window_resets_after_expiry():
    clock = FakeClock()
    limiter = RateLimiter(1, 60, clock=clock)

    assert limiter.allow("alice")
    assert not limiter.allow("alice")
    clock.now += 60
    assert limiter.allow("alice")


def test_retry_after_counts_down():
    clock = FakeClock()
    limiter = RateLimiter(1, 60, clock=clock)
    limiter.allow("alice")

    assert limiter.retry_after("alice") == 60
    clock.now += 45.5
    assert limiter.retry_after("alice") == 15


def test_reset_clears_windows():
    limiter = RateLimiter(1, 60, clock=FakeClock())
    limiter.allow("alice")
    limiter.reset()
    assert limiter.allow("alice")


@pytest.mark.parametrize("max_requests,window,prune_every", [(0, 60, 1), (1, 0, 1), (1, 60, 0)])
def test_rejects_bad_configuration(max_requests, window, prune_every):
    with pytest.raises(ValueError):
        RateLimiter(max_requests, window, prune_every=prune_every)


def test_expired_windows_are_dropped():
    clock = FakeClock()
    limiter = RateLimiter(1, 60, clock=clock, prune_every=100)
    for i in range(1000):
        limiter.allow(f"actor-{i}")
    assert limiter.tracked_keys() == 1000

    clock.now += 60
    for _ in range(100):
        limiter.allow("alice")

    assert limiter.tracked_keys() == 1


def test_live_windows_survive_pruning():
    clock = FakeClock()
    limiter = RateLimiter(1, 60, clock=clock, prune_every=1)
    assert limiter.allow("alice")
    clock.now += 30
    assert limiter.allow("bob")

    assert not limiter.allow("alice")
    assert limiter.tracked_keys() == 2
