"""Rate limiting middleware for upstream-bound requests."""

import logging
from typing import Callable, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from polygon_weather.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


def hits_weather_provider(request: Request) -> bool:
    """Whether serving the request calls Open-Meteo."""
    path = request.url.path.rstrip("/")
    return path == "/weather/current" or (request.method == "POST" and path.endswith("/refresh"))


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Throttles requests that fan out to the weather provider.

    Dashboard reads and edits are served from memory and never limited.
    Limited requests get HTTP 429 with a Retry-After header.
    """

    def __init__(self, app, calls: int = 20, rate_limiter: Optional[RateLimiter] = None):
        """Initialize rate limit middleware.

        Args:
            app: FastAPI application instance
            calls: Maximum upstream-bound requests per second
            rate_limiter: Limiter to consult (creates a Redis-backed one if None)
        """
        super().__init__(app)
        self.rate_limiter = rate_limiter or RateLimiter(max_requests=calls)
        logger.info(f"Rate limiting weather provider requests to {self.rate_limiter.max_requests} req/sec")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not hits_weather_provider(request):
            return await call_next(request)

        allowed, retry_after = await self.rate_limiter.is_allowed()
        if not allowed:
            client_host = request.client.host if request.client else 'unknown'
            logger.warning(f"Rate limit exceeded for {client_host} on {request.method} {request.url.path}")
            return JSONResponse(
                status_code=429,
                content={
                    "detail": "Too many weather requests. Please try again later.",
                    "retry_after": retry_after
                },
                headers={"Retry-After": str(retry_after)}
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.rate_limiter.max_requests)
        response.headers["X-RateLimit-Window"] = "1"
        return response
