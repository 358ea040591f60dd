import pytest

from clusterbackup.readers.kube.throttle import RateLimiter


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)


def test_burst_then_paced():
    clock = FakeClock()
    limiter = RateLimiter(10.0, 2, clock=clock, sleep=clock.sleep)

    assert limiter.acquire() == 0.0
    assert limiter.acquire() == 0.0
    assert limiter.acquire() == pytest.approx(0.1)
    assert limiter.acquire() == pytest.approx(0.2)
    assert clock.sleeps == [pytest.approx(0.1), pytest.approx(0.2)]


def test_tokens_refill_up_to_burst():
    clock = FakeClock()
    limiter = RateLimiter(10.0, 2, clock=clock, sleep=clock.sleep)
    for _ in range(4):
        limiter.acquire()

    clock.now += 10.0

    assert limiter.acquire() == 0.0
    assert limiter.acquire() == 0.0
    assert limiter.acquire() == pytest.approx(0.1)


def test_disabled_when_qps_is_none():
    clock = FakeClock()
    limiter = RateLimiter(None, 1, clock=clock, sleep=clock.sleep)

    for _ in range(100):
        assert limiter.acquire() == 0.0
    assert clock.sleeps == []


@pytest.mark.parametrize("qps, burst", [(0, 1), (-1.0, 1), (1.0, 0)])
def test_invalid_settings(qps, burst):
    with pytest.raises(ValueError):
        RateLimiter(qps, burst)
