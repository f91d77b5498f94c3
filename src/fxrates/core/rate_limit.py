"""Rate limiting configuration using slowapi.

Only the refresh endpoint carries a tight limit: each call reaches the paid
upstream provider. Read endpoints share the default limit.
"""

import re

from fastapi import Request
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from fxrates.core.config import settings

_SECONDS_PER_UNIT = {"second": 1, "minute": 60, "hour": 3600, "day": 86400}


def retry_after_seconds(limit_detail: str) -> int:
    """Derive a Retry-After value from a slowapi limit description.

    Args:
        limit_detail: slowapi detail text, e.g. "10 per 1 minute"

    Returns:
        Window length in seconds (60 when the text cannot be parsed)
    """
    match = re.search(r"\d+\s+per\s+(\d+)\s+(second|minute|hour|day)", limit_detail)
    if match is None:
        return 60
    return int(match.group(1)) * _SECONDS_PER_UNIT[match.group(2)]


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return a 429 response in the same shape as application errors."""
    retry_after = retry_after_seconds(str(exc.detail))
    response = JSONResponse(
        status_code=429,
        content={
            "detail": f"Rate limit exceeded: {exc.detail}",
            "error_code": "RATE_LIMITED",
            "retryable": True,
            "retry_after": retry_after,
        },
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],  # Each endpoint sets its own limit
    enabled=settings.RATE_LIMIT_ENABLED,
    headers_enabled=False,  # Incompatible with FastAPI response models
)
