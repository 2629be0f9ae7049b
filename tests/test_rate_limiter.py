from barber_core.infrastructure.rate_limit.memory_rate_limiter import InMemoryRateLimiter
from barber_core.infrastructure.rate_limit.redis_rate_limiter import RedisRateLimiter


def test_memory_rate_limiter_allows_then_blocks():
    rl = InMemoryRateLimiter()
    key = "otp:+61412345678"
    assert rl.allow(key, max_requests=2, window_seconds=60) is True
    assert rl.allow(key, max_requests=2, window_seconds=60) is True
    assert rl.allow(key, max_requests=2, window_seconds=60) is False
    # Other keys have their own quota
    assert rl.allow("otp:+61412345679", max_requests=2, window_seconds=60) is True


def test_memory_rate_limiter_window_expires(monkeypatch):
    from barber_core.infrastructure.rate_limit import memory_rate_limiter as mod

    clock = [1000.0]
    monkeypatch.setattr(mod.time, "time", lambda: clock[0])
    rl = InMemoryRateLimiter()
    assert rl.allow("k", 1, 60) is True
    assert rl.allow("k", 1, 60) is False
    clock[0] += 61
    assert rl.allow("k", 1, 60) is True


def test_redis_rate_limiter_with_fake():
    class FakePipe:
        def __init__(self, client):
            self.client = client
            self.ops = []

        def incr(self, k, n):
            self.ops.append(("incr", k, n))
            return self

        def expire(self, k, s, nx=False):
            self.ops.append(("expire", k, s, nx))
            return self

        def execute(self):
            results = []
            for op in self.ops:
                if op[0] == "incr":
                    self.client.store[op[1]] = self.client.store.get(op[1], 0) + op[2]
                    results.append(self.client.store[op[1]])
                else:
                    self.client.expiries.setdefault(op[1], op[2])
                    results.append(True)
            return results

    class FakeRedis:
        def __init__(self):
            self.store = {}
            self.expiries = {}

        def pipeline(self):
            return FakePipe(self)

    client = FakeRedis()
    rl = RedisRateLimiter(client)

    assert rl.allow("otp:+61412345678", 2, 60) is True
    assert rl.allow("otp:+61412345678", 2, 60) is True
    assert rl.allow("otp:+61412345678", 2, 60) is False
    assert client.expiries == {"rl:otp:+61412345678:60": 60}
