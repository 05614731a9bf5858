import time

from app.cache.rate_limiter import RateLimiter


def test_allows_up_to_limit_then_rejects():
    limiter = RateLimiter(max_requests=3, window_seconds=60)

    results = [limiter.hit("1.2.3.4") for _ in range(3)]
    assert results == [(True, 2, 0), (True, 1, 0), (True, 0, 0)]

    allowed, remaining, retry_after = limiter.hit("1.2.3.4")
    assert allowed is False
    assert remaining == 0
    assert 1 <= retry_after <= 60


def test_clients_are_counted_separately():
    limiter = RateLimiter(max_requests=1, window_seconds=60)

    assert limiter.hit("client-a")[0] is True
    assert limiter.hit("client-a")[0] is False
    assert limiter.hit("client-b")[0] is True


def test_window_resets_after_expiry():
    limiter = RateLimiter(max_requests=1, window_seconds=1)

    assert limiter.hit("client")[0] is True
    assert limiter.hit("client")[0] is False

    time.sleep(1.2)

    assert limiter.hit("client") == (True, 0, 0)


def test_disabled_limiter_allows_everything():
    limiter = RateLimiter(max_requests=1, window_seconds=60, enabled=False)

    assert all(limiter.hit("client") == (True, 1, 0) for _ in range(10))


def test_storage_failure_lets_requests_through(monkeypatch):
    limiter = RateLimiter(max_requests=1, window_seconds=60)

    def broken(*args):
        raise ConnectionError("redis down")

    monkeypatch.setattr(limiter.strategy, "hit", broken)

    assert limiter.hit("client") == (True, 1, 0)
