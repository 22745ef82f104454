"""
Rate limiting for the HTTP surface (slowapi, Redis-backed).

Callers are bucketed by wallet address when they present one and by client
IP otherwise, so one wallet cannot dodge its send limit by rotating IPs and
anonymous traffic (health checks, webhooks) is still bounded.

Named limits keep the per-route decorators readable and tunable in one place.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded

from mintchat.core.config import get_settings

# Sending and creating records
SEND_MESSAGE_LIMIT = "30/minute"
OPEN_CONVERSATION_LIMIT = "20/minute"
REACTION_LIMIT = "30/minute"
NOTIFICATION_WRITE_LIMIT = "30/minute"
MARK_READ_LIMIT = "60/minute"

# Reads; unread counts are polled by clients without a live socket
READ_LIMIT = "60/minute"
POLL_LIMIT = "120/minute"

DEFAULT_LIMIT = "60/minute"


def _get_rate_limit_key(request: Request) -> str:
    """
    Bucket key for a request.

    Priority:
    1. Identified wallet -> "wallet:{address}"
    2. Anonymous -> "ip:{client_ip}"
    """
    wallet = getattr(request.state, "wallet", None)
    if wallet is not None and getattr(wallet, "is_identified", False):
        return f"wallet:{wallet.address}"

    client_ip = request.client.host if request.client else "unknown"
    return f"ip:{client_ip}"


def _build_limiter() -> Limiter:
    settings = get_settings()
    return Limiter(
        key_func=_get_rate_limit_key,
        default_limits=[DEFAULT_LIMIT],
        enabled=settings.rate_limit_enabled,
        storage_uri=settings.redis_url,
    )


limiter = _build_limiter()


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Standard error body for throttled callers."""
    return JSONResponse(
        status_code=429,
        content={
            "detail": "Rate limit exceeded. Please try again later.",
            "code": "RATE_LIMIT_EXCEEDED",
        },
    )
