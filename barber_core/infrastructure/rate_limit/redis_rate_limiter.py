import redis

from ...application.ports.rate_limiter import RateLimiter


class RedisRateLimiter(RateLimiter):
    """Fixed-window limiter shared by every API process."""

    def __init__(self, client: redis.Redis, prefix: str = "rl:") -> None:
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "rl:") -> "RedisRateLimiter":
        return cls(redis.Redis.from_url(url), prefix)

    def allow(self, key: str, max_requests: int, window_seconds: int) -> bool:
        rk = f"{self.prefix}{key}:{window_seconds}"
        # Use Redis INCR with EXPIRE NX so the window starts at the first hit
        pipe = self.client.pipeline()
        pipe.incr(rk, 1)
        pipe.expire(rk, window_seconds, nx=True)
        count, _ = pipe.execute()
        return int(count) <= int(max_requests)
