"""Tests for the in-memory + Redis rate limiter"""

from concurrent.futures import ThreadPoolExecutor

from formrelay.rate_limiter import RateLimiter, get_redis_client


class FakeClock:
    def __init__(self, now: float = 1_000_000):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeRedis:
    def __init__(self, values=None, ttls=None):
        self.values = dict(values or {})
        self.ttls = dict(ttls or {})
        self.set_calls = []

    def get(self, key):
        return self.values.get(key)

    def ttl(self, key):
        return self.ttls.get(key, -2)

    def set(self, key, value, ex=None):
        self.set_calls.append((key, value, ex))
        self.values[key] = str(value)


class BrokenRedis:
    def get(self, key):
        raise ConnectionError("redis down")

    def ttl(self, key):
        raise ConnectionError("redis down")

    def set(self, key, value, ex=None):
        raise ConnectionError("redis down")


def test_allows_up_to_limit_then_rejects():
    limiter = RateLimiter(limit=3, window_seconds=60, clock=FakeClock())

    decisions = [limiter.check("1.2.3.4") for _ in range(4)]

    assert [d.allowed for d in decisions] == [True, True, True, False]
    assert decisions[-1].count == 3
    assert decisions[-1].retry_after == 60


def test_identities_are_counted_separately():
    limiter = RateLimiter(limit=1, window_seconds=60, clock=FakeClock())

    assert limiter.check("a").allowed
    assert limiter.check("b").allowed
    assert not limiter.check("a").allowed


def test_window_resets_after_expiry():
    clock = FakeClock()
    limiter = RateLimiter(limit=1, window_seconds=60, clock=clock)

    assert limiter.check("a").allowed
    assert not limiter.check("a").allowed

    clock.now += 61

    assert limiter.check("a").allowed


def test_concurrent_checks_do_not_lose_updates():
    limiter = RateLimiter(limit=50, window_seconds=60)

    with ThreadPoolExecutor(max_workers=8) as pool:
        decisions = list(pool.map(lambda _: limiter.check("shared"), range(200)))

    assert sum(d.allowed for d in decisions) == 50


def test_resumes_count_from_redis():
    redis_client = FakeRedis(values={"form_submit:a": "2"}, ttls={"form_submit:a": 30})
    limiter = RateLimiter(limit=3, window_seconds=60, redis_client=redis_client, clock=FakeClock())

    first = limiter.check("a")
    second = limiter.check("a")

    assert first.allowed and first.count == 3
    assert first.retry_after == 30
    assert not second.allowed


def test_syncs_to_redis_periodically():
    clock = FakeClock()
    redis_client = FakeRedis()
    limiter = RateLimiter(limit=10, window_seconds=60, redis_client=redis_client, clock=clock)

    limiter.check("a")
    assert redis_client.set_calls == []

    clock.now += 11
    limiter.check("a")

    assert redis_client.set_calls == [("form_submit:a", 2, 49)]


def test_redis_failures_fall_back_to_memory():
    limiter = RateLimiter(limit=1, window_seconds=60, redis_client=BrokenRedis(), clock=FakeClock())

    assert limiter.check("a").allowed
    assert not limiter.check("a").allowed


def test_internal_error_fails_closed():
    def broken_clock():
        raise RuntimeError("clock failure")

    limiter = RateLimiter(limit=5, window_seconds=60, clock=broken_clock)

    decision = limiter.check("a")

    assert decision.allowed is False


def test_no_redis_url_means_memory_only():
    assert get_redis_client(None) is None
    assert get_redis_client("") is None


class LockRecordingRedis(FakeRedis):
    """Records whether the limiter's lock was held during each Redis call"""

    limiter = None

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.lock_held = []

    def get(self, key):
        self.lock_held.append(self.limiter._lock.locked())
        return super().get(key)

    def ttl(self, key):
        self.lock_held.append(self.limiter._lock.locked())
        return super().ttl(key)

    def set(self, key, value, ex=None):
        self.lock_held.append(self.limiter._lock.locked())
        super().set(key, value, ex=ex)


def test_redis_calls_run_outside_the_lock():
    clock = FakeClock()
    redis_client = LockRecordingRedis()
    limiter = RateLimiter(limit=10, window_seconds=60, redis_client=redis_client, clock=clock)
    redis_client.limiter = limiter

    limiter.check("a")
    clock.now += 11
    limiter.check("a")

    assert len(redis_client.set_calls) == 1
    assert redis_client.lock_held == [False, False, False]
