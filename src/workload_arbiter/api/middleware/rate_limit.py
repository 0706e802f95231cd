"""
Rate limiting for mutating endpoints -- sliding one-minute window per client.

The limiter lives on app.state, so each app (and each test client) has its
own counters.

Configuration via environment:
  WORKLOAD_ARBITER_RATE_LIMIT_PER_MINUTE=120  (default)
"""

import logging
import os
import time
from collections import defaultdict, deque

from fastapi import HTTPException, Request

from ...config import ENV_PREFIX

logger = logging.getLogger(__name__)

DEFAULT_RATE_LIMIT = 120
WINDOW_SECONDS = 60.0


class SlidingWindowLimiter:
    def __init__(self, limit: int = DEFAULT_RATE_LIMIT, window: float = WINDOW_SECONDS):
        self.limit = limit
        self.window = window
        self._hits: dict[str, deque[float]] = defaultdict(deque)

    @classmethod
    def from_env(cls) -> "SlidingWindowLimiter":
        raw = os.environ.get(f"{ENV_PREFIX}RATE_LIMIT_PER_MINUTE", "")
        try:
            limit = int(raw) if raw.strip() else DEFAULT_RATE_LIMIT
        except ValueError:
            logger.warning(f"[RateLimit] Ignoring malformed limit {raw!r}")
            limit = DEFAULT_RATE_LIMIT
        return cls(limit=limit)

    def allow(self, client: str, now: float | None = None) -> bool:
        now = time.monotonic() if now is None else now
        hits = self._hits[client]
        while hits and hits[0] <= now - self.window:
            hits.popleft()
        if len(hits) >= self.limit:
            return False
        hits.append(now)
        return True


async def check_rate_limit(request: Request) -> None:
    """Dependency for mutating routes. Raises HTTP 429 over the limit."""
    limiter: SlidingWindowLimiter | None = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        return
    client = request.client.host if request.client else "unknown"
    if not limiter.allow(client):
        logger.warning(f"[RateLimit] Client {client} exceeded {limiter.limit}/min")
        raise HTTPException(
            status_code=429,
            detail=f"Rate limit exceeded ({limiter.limit} requests per minute)",
            headers={"Retry-After": str(int(limiter.window))},
        )
