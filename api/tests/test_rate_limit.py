from stellr.services.rate_limit import SlidingWindowLimiter


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_limit_then_retry_after_window_slides():
    clock = FakeClock()
    limiter = SlidingWindowLimiter(clock=clock)

    decisions = [limiter.hit("swipe", "u1", 3, 60) for _ in range(3)]
    assert [d.remaining for d in decisions] == [2, 1, 0]

    clock.now += 20.5
    refused = limiter.hit("swipe", "u1", 3, 60)
    assert (refused.allowed, refused.retry_after_seconds) == (False, 40)

    clock.now += 40
    assert limiter.hit("swipe", "u1", 3, 60).allowed


def test_counters_are_per_route_and_user():
    limiter = SlidingWindowLimiter(clock=FakeClock())
    assert limiter.hit("swipe", "u1", 1, 60).allowed
    assert not limiter.hit("swipe", "u1", 1, 60).allowed
    assert limiter.hit("swipe", "u2", 1, 60).allowed
    assert limiter.hit("unmatch", "u1", 1, 60).allowed


def test_idle_users_are_forgotten():
    clock = FakeClock()
    limiter = SlidingWindowLimiter(clock=clock, sweep_every=100)
    for i in range(50):
        limiter.hit("swipe", f"u{i}", 5, 60)
    assert limiter.tracked() == 50

    clock.now += 100
    limiter.hit("swipe", "late", 5, 60)
    assert limiter.tracked() == 1


def test_sweep_keeps_users_still_inside_their_window():
    clock = FakeClock()
    limiter = SlidingWindowLimiter(clock=clock, sweep_every=30)
    limiter.hit("match_request", "u1", 1, 3600)
    limiter.hit("swipe", "u2", 1, 10)

    clock.now += 30
    limiter.hit("swipe", "u3", 1, 10)
    assert limiter.tracked() == 2
    assert not limiter.hit("match_request", "u1", 1, 3600).allowed
