"""Sliding-window rate limiting backed by a Redis Lua script."""

import logging
import random
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from procubid.api.responses import error_body
from procubid.core.redis import get_redis

logger = logging.getLogger(__name__)

# Probes and scrapes are never throttled
UNLIMITED_PATHS = ("/health", "/metrics")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP and per-user request limits over a one second window.

    The caller's user id comes from the `X-User-Id` header set by the
    gateway. When Redis is unreachable requests are let through.
    """

    # Trim, count and record in one atomic call
    RATE_LIMIT_SCRIPT = """
    local key = KEYS[1]
    local now = tonumber(ARGV[1])
    local window = tonumber(ARGV[2])
    local limit = tonumber(ARGV[3])
    local request_id = ARGV[4]
    local window_start = now - window

    redis.call('ZREMRANGEBYSCORE', key, 0, window_start)

    local count = redis.call('ZCARD', key)

    if count < limit then
        redis.call('ZADD', key, now, request_id)
        redis.call('EXPIRE', key, window + 1)
        return {1, 0}
    else
        local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
        local retry_after = 1
        if oldest and #oldest >= 2 then
            retry_after = math.ceil(oldest[2] + window - now)
            if retry_after < 1 then retry_after = 1 end
        end
        return {0, retry_after}
    end
    """

    def __init__(self, app, user_limit: int = 10, ip_limit: int = 100):
        super().__init__(app)
        self.user_limit = user_limit
        self.ip_limit = ip_limit
        self._rate_limit_script = None

    def _get_rate_limit_script(self, redis):
        if self._rate_limit_script is None:
            self._rate_limit_script = redis.register_script(self.RATE_LIMIT_SCRIPT)
        return self._rate_limit_script

    def _too_many(self, message: str, retry_after: int) -> JSONResponse:
        return JSONResponse(
            status_code=429,
            content=error_body("RATE_LIMITED", message, retry_after=retry_after),
            headers={"Retry-After": str(retry_after)},
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in UNLIMITED_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        user_id = request.headers.get("X-User-Id")

        try:
            redis = await get_redis()
            allowed, retry_after = await self._check_rate_limit_lua(
                redis, f"ratelimit:ip:{client_ip}", self.ip_limit
            )
            if not allowed:
                return self._too_many("Too many requests from this IP", retry_after)

            if user_id:
                allowed, retry_after = await self._check_rate_limit_lua(
                    redis, f"ratelimit:user:{user_id}", self.user_limit
                )
                if not allowed:
                    return self._too_many("Too many requests for this user", retry_after)
        except Exception as e:
            logger.warning(f"Rate limiting skipped, Redis unavailable: {e}")

        return await call_next(request)

    async def _check_rate_limit_lua(
        self, redis, key: str, limit: int, window: int = 1
    ) -> tuple[bool, int]:
        """Check and record one request against a key.

        Args:
            redis: Redis client
            key: Rate limit key
            limit: Maximum requests per window
            window: Window size in seconds

        Returns:
            Tuple of (allowed, retry_after_seconds)
        """
        now = time.time()
        request_id = f"{now}:{random.randint(0, 999999)}"

        script = self._get_rate_limit_script(redis)
        result = await script(keys=[key], args=[now, window, limit, request_id])

        return bool(result[0]), int(result[1])
