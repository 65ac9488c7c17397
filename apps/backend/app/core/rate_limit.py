"""
rate_limit.py — Per-IP flood guard for the companion endpoint.

Uses slowapi (a Starlette-compatible wrapper around the `limits` library).
Requests are keyed by client IP address. This is a coarse outer guard only;
the per-user quota (20/hour) lives in app.services.rate_limiter.

Usage in routes:
    @router.post("/api/ai-companion")
    @limiter.limit(settings.companion_ip_rate_limit)
    async def my_endpoint(request: Request):
        ...

Wire into app (in main.py):
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from app.models.companion import CompanionError, ErrorCode

limiter = Limiter(key_func=get_remote_address)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return the companion error shape instead of slowapi's default body."""
    body = CompanionError(
        error=f"Too many requests from this address ({exc.detail}).",
        code=ErrorCode.RATE_LIMITED,
    )
    return JSONResponse(status_code=429, content=body.model_dump(mode="json"))
