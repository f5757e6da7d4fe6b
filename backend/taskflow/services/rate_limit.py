import logging

import redis
from redis.exceptions import ConnectionError, TimeoutError

logger = logging.getLogger(__name__)


class RateLimiter:
    """Fixed-window attempt counter. Allows everything when Redis is down."""

    def __init__(self, client: redis.Redis, prefix: str = "login", limit: int = 5, window_seconds: int = 300):
        self.client = client
        self.prefix = prefix
        self.limit = limit
        self.window_seconds = window_seconds

    @classmethod
    def from_settings(cls, settings) -> "RateLimiter":
        client = redis.Redis.from_url(settings.redis_url, decode_responses=True, socket_connect_timeout=1)
        return cls(client, limit=settings.login_rate_limit, window_seconds=settings.login_rate_window_seconds)

    def hit(self, key: str) -> bool:
        if self.limit == 0:
            return True
        redis_key = f"{self.prefix}:{key}"
        try:
            count = self.client.incr(redis_key)
            if count == 1:
                self.client.expire(redis_key, self.window_seconds)
            return count <= self.limit
        except (ConnectionError, TimeoutError):
            logger.warning("Rate limiter unavailable, allowing %s", redis_key)
            return True

    def reset(self, key: str) -> None:
        if self.limit == 0:
            return
        redis_key = f"{self.prefix}:{key}"
        try:
            self.client.delete(redis_key)
        except (ConnectionError, TimeoutError):
            return
