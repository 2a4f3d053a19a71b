"""
Fixed-window request limiting per client IP, applied to every route.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Optional, Union

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from config import Settings
from utils.redis_client import get_redis


logger = logging.getLogger(__name__)

THROTTLED_MESSAGE = "Too many requests, please try again later."


@dataclass
class Hit:
    allowed: bool
    count: int
    limit: int
    reset_at: float

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)

    def retry_after(self, now: Optional[float] = None) -> int:
        return max(1, math.ceil(self.reset_at - (now if now is not None else time.time())))


class MemoryRateLimiter:
    def __init__(self, *, max_requests: int = 100, window_seconds: int = 15 * 60):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._windows: dict[str, tuple[int, float]] = {}  # key -> (count, reset_at)
        self._lock = threading.Lock()

    def hit(self, key: str) -> Hit:
        now = time.time()
        with self._lock:
            count, reset_at = self._windows.get(key, (0, 0.0))
            if now >= reset_at:
                count, reset_at = 0, now + self.window_seconds
            count += 1
            self._windows[key] = (count, reset_at)
        return Hit(allowed=count <= self.max_requests, count=count, limit=self.max_requests, reset_at=reset_at)

    def purge_expired(self) -> int:
        now = time.time()
        with self._lock:
            stale = [k for k, (_, reset_at) in self._windows.items() if now >= reset_at]
            for k in stale:
                del self._windows[k]
        return len(stale)


class RedisRateLimiter:
    def __init__(self, client, *, max_requests: int = 100, window_seconds: int = 15 * 60):
        self.client = client
        self.max_requests = max_requests
        self.window_seconds = window_seconds

    def hit(self, key: str) -> Hit:
        rkey = f"ratelimit:{key}"
        pipe = self.client.pipeline(transaction=True)
        pipe.incr(rkey)
        pipe.pttl(rkey)
        count, pttl = pipe.execute()
        if pttl is None or pttl < 0:
            self.client.expire(rkey, self.window_seconds)
            pttl = self.window_seconds * 1000
        reset_at = time.time() + pttl / 1000.0
        return Hit(allowed=count <= self.max_requests, count=int(count), limit=self.max_requests, reset_at=reset_at)

    def purge_expired(self) -> int:
        return 0


RateLimiter = Union[MemoryRateLimiter, RedisRateLimiter]


def build_rate_limiter(settings: Settings) -> RateLimiter:
    r = get_redis(settings.redis_url)
    if r:
        return RedisRateLimiter(
            r, max_requests=settings.rate_limit_max, window_seconds=settings.rate_limit_window_seconds
        )
    return MemoryRateLimiter(
        max_requests=settings.rate_limit_max, window_seconds=settings.rate_limit_window_seconds
    )


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limiter: RateLimiter):
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        ip = client_ip(request)
        hit = await run_in_threadpool(self.limiter.hit, ip)
        if not hit.allowed:
            logger.warning("Rate limit exceeded for %s on %s", ip, request.url.path)
            return JSONResponse(
                status_code=429,
                content={"error": THROTTLED_MESSAGE},
                headers={
                    "Retry-After": str(hit.retry_after()),
                    "X-RateLimit-Limit": str(hit.limit),
                    "X-RateLimit-Remaining": "0",
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(hit.limit)
        response.headers["X-RateLimit-Remaining"] = str(hit.remaining)
        return response
