"""
Fixed-window rate limiter for the Gateway service.

Counters live in Redis under ``rate_limit:<client_id>`` so every gateway
instance shares one budget per client. A counter is created by the first
request of a window, expires on its own when the window ends, and is never
deleted here.
"""

from typing import Dict, Any, Optional

import redis.asyncio as redis
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.security import get_client_ip

DEFAULT_LIMIT = 100
DEFAULT_WINDOW_SECONDS = 60


class FixedWindowRateLimiter:
    """Distributed fixed-window request counter using Redis.

    The default decision reads the counter, rejects when it has reached the
    limit, and only then increments. The read and the increment are separate
    round trips, so concurrent requests from one client can overshoot the
    limit before their increments become visible to each other.

    With ``strict=True`` the counter is incremented first and the request is
    rejected when the new value exceeds the limit, which cannot overshoot.
    Rejected requests still count towards the window in that mode.

    Any Redis failure admits the request (fail open).
    """

    def __init__(
        self,
        redis_url: str,
        limit: int = DEFAULT_LIMIT,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        strict: bool = False,
        socket_timeout: Optional[float] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.redis_url = redis_url
        self.limit = limit
        self.window_seconds = window_seconds
        self.strict = strict
        self.socket_timeout = socket_timeout
        self.metrics = metrics
        self.logger = get_logger("gateway.rate_limiter")
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            options: Dict[str, Any] = {"decode_responses": True}
            if self.socket_timeout is not None:
                options["socket_timeout"] = self.socket_timeout
                options["socket_connect_timeout"] = self.socket_timeout
            self._redis = redis.from_url(self.redis_url, **options)
        return self._redis

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    def _make_key(self, client_id: str) -> str:
        """Generate rate limit key."""
        return f"rate_limit:{client_id}"

    async def check_rate_limit(self, client_id: str) -> Dict[str, Any]:
        """Decide whether a request from ``client_id`` is admitted."""
        key = self._make_key(client_id)

        try:
            redis_client = await self._get_redis()
            if self.strict:
                result = await self._increment_then_check(redis_client, key)
            else:
                result = await self._check_then_increment(redis_client, key)

        except Exception as e:
            self.logger.error("Rate limit check error", client_id=client_id, error=str(e))
            self._record("fail_open")
            return {
                "allowed": True,
                "current_count": 0,
                "limit": self.limit,
                "remaining": self.limit,
                "retry_after": 0,
                "error": str(e)
            }

        if result["allowed"]:
            self._record("allowed")
        else:
            self.logger.warning(
                "Rate limit exceeded",
                client_id=client_id,
                current_count=result["current_count"],
                limit=self.limit
            )
            self._record("rejected")
        return result

    async def _check_then_increment(self, redis_client: redis.Redis, key: str) -> Dict[str, Any]:
        current_value = await redis_client.get(key)
        current_count = int(current_value) if current_value is not None else 0

        if current_count >= self.limit:
            return self._rejected(current_count)

        new_count = await redis_client.incr(key)
        if new_count == 1:
            await redis_client.expire(key, self.window_seconds)
        return self._allowed(new_count)

    async def _increment_then_check(self, redis_client: redis.Redis, key: str) -> Dict[str, Any]:
        new_count = await redis_client.incr(key)
        if new_count == 1:
            await redis_client.expire(key, self.window_seconds)

        if new_count > self.limit:
            return self._rejected(new_count)
        return self._allowed(new_count)

    def _allowed(self, count: int) -> Dict[str, Any]:
        return {
            "allowed": True,
            "current_count": count,
            "limit": self.limit,
            "remaining": max(0, self.limit - count),
            "retry_after": 0
        }

    def _rejected(self, count: int) -> Dict[str, Any]:
        return {
            "allowed": False,
            "current_count": count,
            "limit": self.limit,
            "remaining": 0,
            "retry_after": self.window_seconds
        }

    def _record(self, decision: str) -> None:
        if self.metrics is not None:
            self.metrics.increment_counter("rate_limit_decisions_total", decision=decision)

    async def check_health(self) -> str:
        """Report whether the counter store answers a ping."""
        try:
            redis_client = await self._get_redis()
            await redis_client.ping()
            return "ok"
        except Exception as e:
            self.logger.warning("Rate limit store unreachable", error=str(e))
            return "error"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Admission stage: reject over-limit clients before anything else runs."""

    def __init__(self, app, rate_limiter: FixedWindowRateLimiter, enabled: bool = True):
        super().__init__(app)
        self.rate_limiter = rate_limiter
        self.enabled = enabled
        self.logger = get_logger("gateway.rate_limit_middleware")

    async def dispatch(self, request: Request, call_next):
        if not self.enabled:
            return await call_next(request)

        client_id = get_client_ip(request)
        try:
            result = await self.rate_limiter.check_rate_limit(client_id)
        except Exception as e:
            self.logger.error("Rate limiter middleware error", client_id=client_id, error=str(e))
            return await call_next(request)

        if not result["allowed"]:
            return self.rejection_response()

        return await call_next(request)

    def rejection_response(self) -> Response:
        """429 with an empty body; the request goes no further."""
        return Response(
            status_code=429,
            headers={
                "X-Rate-Limit-Exceeded": "true",
                "Retry-After": str(self.rate_limiter.window_seconds),
            },
        )
