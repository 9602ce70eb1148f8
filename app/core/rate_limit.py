"""
Rate limiting for the virtual patient API.

- Keys on client IP address
- Disabled in the test environment
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from app.patient_service.config import settings
from app.patient_service.utils.logger import get_logger

logger = get_logger(__name__)


def client_ip(request: Request) -> str:
    """Rate-limiting key: client IP, or an anonymous bucket."""
    ip = get_remote_address(request)
    return f"ip:{ip}" if ip else "anonymous"


#  Global limiter instance
limiter = Limiter(
    key_func=client_ip,
    default_limits=["100/minute"],  # Safety net
    enabled=settings.ENV != "test",
)


async def rate_limit_exceeded_handler(
    request: Request,
    exc: RateLimitExceeded,
):
    """
    Custom response when rate limit is exceeded.
    """
    logger.warning(
        "Rate limit exceeded",
        extra={"path": request.url.path, "ip": get_remote_address(request)},
    )

    return JSONResponse(
        status_code=429,
        content={"error": "Too many requests. Please slow down."},
    )
