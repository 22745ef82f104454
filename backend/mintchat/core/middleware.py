"""
Middleware for FastAPI.

Contains:
- CorrelationIDMiddleware: Extracts/generates request correlation IDs
- WalletIdentityMiddleware: Reads the caller's wallet address and attaches it
- RequestLoggingMiddleware: Debug logging of identified requests
"""

import logging
import time
import uuid
from contextvars import ContextVar

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from mintchat.core.identity import (
    WALLET_HEADER,
    InvalidIdentityError,
    WalletOptionalUser,
    normalize_identity,
)

logger = logging.getLogger(__name__)

# Context variable for correlation ID - accessible from any async context
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """Get the current correlation ID from context."""
    return correlation_id_var.get()


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that extracts or generates a correlation ID for each request.

    The correlation ID is:
    1. Extracted from X-Request-ID or X-Correlation-ID header if present
    2. Generated as a UUID if not present
    3. Stored in request.state.correlation_id for route handlers
    4. Stored in ContextVar for logging filter access
    5. Returned in X-Request-ID response header
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = (
            request.headers.get("X-Request-ID")
            or request.headers.get("X-Correlation-ID")
            or str(uuid.uuid4())
        )

        request.state.correlation_id = correlation_id
        token = correlation_id_var.set(correlation_id)

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = correlation_id
            return response
        finally:
            correlation_id_var.reset(token)


class WalletIdentityMiddleware(BaseHTTPMiddleware):
    """
    Middleware that attaches the caller's wallet identity to requests.

    This middleware:
    1. Reads the X-Wallet-Address header
    2. Normalizes it to lowercase
    3. Attaches it to request.state.wallet
    4. Continues processing without an address (for public endpoints)
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.wallet = WalletOptionalUser(is_identified=False)
        request.state.identity_error = None

        raw_address = request.headers.get(WALLET_HEADER)
        if raw_address:
            try:
                request.state.wallet = WalletOptionalUser(
                    address=normalize_identity(raw_address),
                    is_identified=True,
                )
            except InvalidIdentityError as e:
                request.state.identity_error = str(e)

        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Debug access log for requests made by identified wallets.

    Emits one line per request with wallet, method, path, status and
    duration as structured fields. Enabled only when settings.debug is set.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        response = await call_next(request)

        wallet = getattr(request.state, "wallet", None)
        if wallet and wallet.is_identified:
            logger.debug(
                "%s %s -> %d",
                request.method,
                request.url.path,
                response.status_code,
                extra={
                    "wallet": wallet.address,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                },
            )
        return response
