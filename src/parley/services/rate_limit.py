"""Per-user send throttling for direct messages."""

from __future__ import annotations

import logging
import time
from threading import Lock
from typing import Any

import redis

from parley.core.errors import RateLimited
from parley.core.settings import settings

logger = logging.getLogger(__name__)


class MessageRateLimiter:
    """Fixed-window message counter keyed by user id.

    Counters live in Redis when ``REDIS_URL`` is configured and reachable;
    otherwise (or after a Redis error) they live in this process.
    """

    def __init__(
        self,
        *,
        limit: int | None = None,
        window_seconds: int | None = None,
        redis_client: Any | None = None,
    ) -> None:
        self.limit = settings.dm_rate_limit_messages if limit is None else limit
        self.window_seconds = max(
            1,
            settings.dm_rate_limit_window_seconds if window_seconds is None else window_seconds,
        )
        self._redis = redis_client
        if self._redis is None and settings.redis_url:
            self._redis = redis.from_url(settings.redis_url)  # type: ignore[no-untyped-call]
        self._counters: dict[str, tuple[int, int]] = {}
        self._lock = Lock()

    def _current_window(self) -> int:
        return int(time.time() // self.window_seconds)

    def hit(self, user_id: str) -> int:
        """Count one message for ``user_id`` and return the window total."""
        window = self._current_window()
        if self._redis is not None:
            key = f"dmrate:{user_id}:{window}"
            try:
                pipe = self._redis.pipeline()
                pipe.incr(key)
                pipe.expire(key, self.window_seconds)
                count, _ = pipe.execute()
                return int(count)
            except redis.RedisError as exc:
                logger.warning("Redis rate limiting unavailable, using in-process counters: %s", exc)
                self._redis = None

        with self._lock:
            stored_window, count = self._counters.get(user_id, (window, 0))
            if stored_window != window:
                count = 0
            count += 1
            self._counters[user_id] = (window, count)
            return count

    def check(self, user_id: str) -> None:
        """Raise ``RateLimited`` once the user exceeds the allowance."""
        if self.limit <= 0:
            return
        count = self.hit(user_id)
        if count > self.limit:
            logger.info("Rate limit hit for %s (%d in window)", user_id, count)
            raise RateLimited("Too many messages, slow down")


_default_limiter: MessageRateLimiter | None = None
_default_lock = Lock()


def get_rate_limiter() -> MessageRateLimiter:
    """Return the process-wide rate limiter."""
    global _default_limiter
    with _default_lock:
        if _default_limiter is None:
            _default_limiter = MessageRateLimiter()
        return _default_limiter
