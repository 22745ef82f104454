import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from mintchat.core.config import get_settings
from mintchat.core.exceptions import register_exception_handlers
from mintchat.core.logging_config import setup_logging
from mintchat.core.middleware import (
    CorrelationIDMiddleware,
    RequestLoggingMiddleware,
    WalletIdentityMiddleware,
)
from mintchat.core.rate_limit import limiter, rate_limit_exceeded_handler
from mintchat.core.realtime import reset_publish_client
from mintchat.core.redis import close_redis, init_redis
from mintchat.routers import (
    conversations,
    health,
    marketplace,
    notifications,
    reactions,
    realtime,
)

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    setup_logging()
    logger.info("Starting %s...", settings.app_name)
    await init_redis()
    logger.info("Redis connection initialized")
    yield
    logger.info("Shutting down %s...", settings.app_name)
    await close_redis()
    reset_publish_client()
    logger.info("Redis connection closed")


app = FastAPI(
    title=settings.app_name,
    description="Wallet-to-wallet messaging and notification API for the NFT marketplace",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Wallet identity middleware (runs after CORS, before routes)
app.add_middleware(WalletIdentityMiddleware)
if settings.debug:
    app.add_middleware(RequestLoggingMiddleware)

# Correlation IDs wrap everything so every log line of a request carries one
app.add_middleware(CorrelationIDMiddleware)

# Rate limiting (slowapi + Redis)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Global exception handlers (domain exceptions → HTTP responses)
register_exception_handlers(app)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(
    conversations.router,
    prefix=f"{settings.api_prefix}/conversations",
    tags=["Conversations"],
)
app.include_router(
    notifications.router,
    prefix=f"{settings.api_prefix}/notifications",
    tags=["Notifications"],
)
app.include_router(reactions.router, prefix=f"{settings.api_prefix}/reactions", tags=["Reactions"])
app.include_router(
    marketplace.router,
    prefix=f"{settings.api_prefix}/webhooks/marketplace",
    tags=["Webhooks"],
)
app.include_router(realtime.router, prefix=settings.api_prefix, tags=["Realtime"])
