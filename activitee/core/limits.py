from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from activitee.core.logging_utils import error_tracker

limiter = Limiter(key_func=get_remote_address, default_limits=["120/minute"])


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Rate limit responses share the application error body"""
    error_tracker.track_error(
        "RATE_LIMIT_EXCEEDED",
        str(exc.detail),
        {"path": request.url.path, "method": request.method},
    )
    return JSONResponse(
        status_code=429,
        content={
            "error": "RATE_LIMIT_EXCEEDED",
            "message": f"Rate limit exceeded: {exc.detail}",
            "details": {},
            "path": request.url.path,
        },
    )
