"""
Shared async Redis connection.

One pool per process, opened in the app lifespan. It carries the live
channel subscriptions (RealtimeBus) and is pinged by /health/redis; the
slowapi limiter and the sync publisher open their own connections.

Topic names for the live channels are built here so publishers and
subscribers cannot drift apart.
"""

import asyncio
import logging
from typing import Optional

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from mintchat.core.config import get_settings
from mintchat.core.constants import MESSAGES_TOPIC_PREFIX, NOTIFICATIONS_TOPIC_PREFIX

logger = logging.getLogger(__name__)

# Each open Subscription holds one pub/sub connection
MAX_CONNECTIONS = 50

# Startup ping attempts; a delay is slept before every attempt after the first
MAX_RETRIES = 3
RETRY_DELAYS = [1, 2, 4]

_redis_pool: Optional[ConnectionPool] = None
_redis_client: Optional[Redis] = None


def _reset_redis() -> None:
    """Reset Redis state (for testing)."""
    global _redis_pool, _redis_client
    _redis_pool = None
    _redis_client = None


async def _ping_with_retry(client: Redis) -> None:
    last_error: Optional[Exception] = None
    for attempt in range(MAX_RETRIES):
        if attempt:
            delay = RETRY_DELAYS[attempt - 1]
            logger.warning(
                "Redis ping failed (attempt %d/%d), retrying in %ds: %s",
                attempt,
                MAX_RETRIES,
                delay,
                last_error,
            )
            await asyncio.sleep(delay)
        try:
            await client.ping()
            return
        except RedisError as e:
            last_error = e

    raise RuntimeError(f"Redis connection failed after {MAX_RETRIES} attempts: {last_error}")


async def init_redis() -> None:
    """
    Open the pool and verify connectivity.

    Raises:
        RuntimeError: Redis did not answer a ping after MAX_RETRIES attempts
    """
    global _redis_pool, _redis_client

    if _redis_pool is None:
        _redis_pool = ConnectionPool.from_url(
            get_settings().redis_url,
            max_connections=MAX_CONNECTIONS,
            decode_responses=True,
        )
        _redis_client = Redis(connection_pool=_redis_pool)

    await _ping_with_retry(_redis_client)
    logger.info("Redis connection verified")


async def close_redis() -> None:
    """Close the client and its pool."""
    global _redis_pool, _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
    if _redis_pool is not None:
        await _redis_pool.disconnect()
        _redis_pool = None


def get_redis() -> Redis:
    """
    The process-wide async client.

    Raises:
        RuntimeError: init_redis() has not run yet
    """
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


class LiveChannelKeys:
    """Pub/sub topic names for live delivery (insert events only)."""

    @staticmethod
    def conversation(conversation_id: str) -> str:
        """New messages of one conversation."""
        return f"{MESSAGES_TOPIC_PREFIX}:{conversation_id}"

    @staticmethod
    def notifications(identity: str) -> str:
        """New notifications addressed to one wallet."""
        return f"{NOTIFICATIONS_TOPIC_PREFIX}:{identity}"
