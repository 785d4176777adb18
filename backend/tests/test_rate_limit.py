from services.rate_limit import RateLimiter

def test_fixed_window():
    limiter = RateLimiter(max_requests=2, window_seconds=60)
    assert limiter.hit("1.2.3.4", "/api/x", now=0.0)
    assert limiter.hit("1.2.3.4", "/api/x", now=10.0)
    assert not limiter.hit("1.2.3.4", "/api/x", now=59.9)
    # Window expired: counting starts over
    assert limiter.hit("1.2.3.4", "/api/x", now=60.0)

def test_keys_are_client_and_endpoint():
    limiter = RateLimiter(max_requests=1)
    assert limiter.hit("a", "/api/x", now=0.0)
    assert limiter.hit("b", "/api/x", now=0.0)
    assert limiter.hit("a", "/api/y", now=0.0)
    assert not limiter.hit("a", "/api/x", now=1.0)

def test_reset():
    limiter = RateLimiter(max_requests=1)
    limiter.hit("a", "/api/x", now=0.0)
    limiter.reset()
    assert limiter.hit("a", "/api/x", now=1.0)

def test_expired_windows_are_dropped_when_full():
    limiter = RateLimiter(max_requests=1, window_seconds=60, max_entries=2)
    assert limiter.hit("a", "/api/x", now=0.0)
    assert limiter.hit("b", "/api/x", now=0.0)
    assert limiter.hit("c", "/api/x", now=100.0)
    assert len(limiter._windows) == 1

    # Live windows are kept and still enforced
    assert limiter.hit("d", "/api/x", now=110.0)
    assert not limiter.hit("c", "/api/x", now=120.0)
    assert len(limiter._windows) == 2
