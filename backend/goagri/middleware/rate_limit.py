"""Rate limiting middleware using Redis.

Sliding-window limits keyed by user (from the bearer token) or client IP.
Reviews (approve/reject) get a much tighter budget than ordinary calls.
If Redis is unreachable the request is allowed through.
"""

import logging
import re
import time
from typing import Callable, Optional

from fastapi import Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware

from goagri.config import settings
from goagri.middleware.exceptions import create_error_response
from goagri.utils.redis_pool import get_redis

logger = logging.getLogger(__name__)

REVIEW_PATH = re.compile(r"^/api/activity-logs/[^/]+/(approve|reject)/?$")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-user / per-IP sliding window limiter."""

    def __init__(
        self,
        app,
        default_limit: int = 120,  # requests
        default_window: int = 60,  # seconds
        review_limit: int = 10,
        exempt_paths: Optional[list[str]] = None,
        enabled: bool = True,
    ):
        super().__init__(app)
        self.default_limit = default_limit
        self.default_window = default_window
        self.enabled = enabled
        self.exempt_paths = exempt_paths or ["/health", "/docs", "/openapi.json"]

        self.custom_limits: list[tuple[re.Pattern, str, int, int]] = [
            (REVIEW_PATH, "review", review_limit, 60),
        ]

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.enabled:
            return await call_next(request)

        if any(request.url.path.startswith(path) for path in self.exempt_paths):
            return await call_next(request)

        bucket, limit, window = self._get_limit_for_path(request.url.path)
        key = f"{bucket}:{self._get_rate_limit_key(request)}"

        allowed, remaining, reset_time = await self._check_rate_limit(key, limit, window)

        if not allowed:
            retry_after = max(int(reset_time - time.time()), 1)
            return create_error_response(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                message=f"Rate limit exceeded. Try again in {retry_after} seconds.",
                error_code="RATE_LIMITED",
                headers={
                    "X-RateLimit-Limit": str(limit),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(int(reset_time)),
                    "Retry-After": str(retry_after),
                },
            )

        response = await call_next(request)

        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Reset"] = str(int(reset_time))
        return response

    def _get_limit_for_path(self, path: str) -> tuple[str, int, int]:
        for pattern, bucket, limit, window in self.custom_limits:
            if pattern.match(path):
                return bucket, limit, window
        return "default", self.default_limit, self.default_window

    def _get_rate_limit_key(self, request: Request) -> str:
        """User ID from the token if there is one, else the client IP."""
        auth_header = request.headers.get("authorization", "")
        if auth_header.startswith("Bearer "):
            from goagri.auth.jwt import decode_token

            user_id = decode_token(auth_header[7:]).get("sub")
            if user_id:
                return f"user:{user_id}"

        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            ip = forwarded.split(",")[0].strip()
        else:
            ip = request.client.host if request.client else "unknown"
        return f"ip:{ip}"

    async def _check_rate_limit(
        self, key: str, limit: int, window: int
    ) -> tuple[bool, int, float]:
        """Returns (allowed, remaining, reset_time)."""
        current_time = time.time()
        window_start = current_time - window
        redis_key = f"ratelimit:{key}"

        try:
            redis_client = await get_redis()
            await redis_client.zremrangebyscore(redis_key, 0, window_start)
            count = await redis_client.zcard(redis_key)

            if count >= limit:
                oldest = await redis_client.zrange(redis_key, 0, 0, withscores=True)
                reset_time = oldest[0][1] + window if oldest else current_time + window
                return False, 0, reset_time

            await redis_client.zadd(redis_key, {str(current_time): current_time})
            await redis_client.expire(redis_key, window)

            return True, limit - count - 1, current_time + window

        except Exception as e:
            # Fail open
            logger.warning(f"Rate limit check failed: {e}")
            return True, limit, current_time + window


def rate_limit_options() -> dict:
    """Middleware kwargs derived from settings."""
    return {
        "default_limit": settings.rate_limit_default,
        "review_limit": settings.review_rate_limit_per_minute,
        "enabled": settings.rate_limit_enabled,
        "exempt_paths": ["/health", "/docs", "/openapi.json", "/redoc"],
    }
