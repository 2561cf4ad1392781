"""Rate limiting middleware — Redis-based fixed window.

Learn: one counter per IP per minute, stored in Redis under
"musaib:rl:{ip}:{bucket}:{minute}". Credential endpoints (login and
password reset) get a stricter limit to slow down brute-force and
reset-mail flooding.

Skips rate limiting when Redis is unavailable (e.g., in tests).
"""

import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from musaib.realtime.pubsub import get_redis, redis_available

AUTH_PATHS = ("/login", "/password-reset")


def is_auth_request(request: Request) -> bool:
    return request.method == "POST" and request.url.path in AUTH_PATHS


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Redis-based rate limiting per IP per minute."""

    def __init__(self, app, default_rpm: int = 100, auth_rpm: int = 10):
        super().__init__(app)
        self.default_rpm = default_rpm
        self.auth_rpm = auth_rpm

    async def dispatch(self, request: Request, call_next) -> Response:
        if not redis_available():
            return await call_next(request)
        redis = get_redis()

        client_ip = request.client.host if request.client else "unknown"
        is_auth = is_auth_request(request)
        rpm = self.auth_rpm if is_auth else self.default_rpm

        window = int(time.time() // 60)
        bucket = "auth" if is_auth else "portal"
        key = f"musaib:rl:{client_ip}:{bucket}:{window}"

        try:
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, 120)
        except Exception:
            # Redis error: don't block the request
            return await call_next(request)

        if count > rpm:
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later."},
                headers={"Retry-After": "60"},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(rpm)
        response.headers["X-RateLimit-Remaining"] = str(max(0, rpm - count))
        return response
