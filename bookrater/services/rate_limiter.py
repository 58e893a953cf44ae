"""
Rate Limiting Service

Implements rate limiting using slowapi to slow down credential stuffing
and signup spam on the authentication routes.

Key Features:
=============
1. IP-based limits, honouring proxy headers
2. Fixed-window strategy with a configurable cap (RATE_LIMIT_AUTH)
3. In-memory storage by default, Redis via RATE_LIMIT_STORAGE_URI
4. JSON 429 responses
"""

import logging

from fastapi import Request
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from bookrater.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def get_client_ip(request: Request) -> str:
    """
    Get client IP address for rate limiting.

    Checks X-Forwarded-For, then X-Real-IP, then the direct connection.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # X-Forwarded-For can contain multiple IPs; first is the client
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return get_remote_address(request)


def create_limiter() -> Limiter:
    """
    Create and configure the rate limiter.

    No default limits are set: only routes decorated with
    @limiter.limit(...) are throttled.
    """
    limiter = Limiter(
        key_func=get_client_ip,
        storage_uri=settings.rate_limit_storage_uri,
        strategy="fixed-window",
        enabled=settings.rate_limit_enabled,
    )

    logger.info(
        f"Rate limiter initialized - enabled: {settings.rate_limit_enabled}, "
        f"auth: {settings.rate_limit_auth}"
    )

    return limiter


limiter = create_limiter()


def retry_after_seconds(exc: RateLimitExceeded) -> int:
    """Length of the exceeded limit's window, the longest a client waits."""
    return exc.limit.limit.get_expiry()


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """
    Handler for rate limit exceeded errors.

    Returns a 429 JSON response with a Retry-After header.
    """
    limit_detail = str(exc.detail)

    response = JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "detail": "Too many requests. Please slow down.",
            "limit": limit_detail,
        },
    )

    response.headers["Retry-After"] = str(retry_after_seconds(exc))
    response.headers["X-RateLimit-Limit"] = limit_detail

    logger.warning(
        f"Rate limit exceeded for {get_client_ip(request)}: {limit_detail}"
    )

    return response
