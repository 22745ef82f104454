"""
Live channels over Redis pub/sub.

Publishing happens from synchronous services through a lazily created sync
client (same connection settings as the rest of the app). Publishing is
best-effort: a failed publish is a transport problem, logged and dropped,
and never fails the write that triggered it. Subscribers recover through
their own reconnect loop or a manual refresh query.

Subscribing is async: each Subscription runs its own listener task on a
redis.asyncio pub/sub connection, reconnects with backoff on RedisError and
guarantees that no callback runs once unsubscribe() has returned.

Delivery is at-least-once from the consumer's point of view; consumers
dedup by record id.
"""

import asyncio
import inspect
import json
import logging
from typing import Any, Callable, Optional

from redis import Redis as SyncRedis
from redis.asyncio import Redis
from redis.exceptions import RedisError

from mintchat.core.config import get_settings
from mintchat.core.constants import (
    SUBSCRIPTION_POLL_TIMEOUT_SECONDS,
    SUBSCRIPTION_READY_TIMEOUT_SECONDS,
    SUBSCRIPTION_RETRY_DELAYS,
)

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Any]
Decoder = Callable[[dict], Any]

_sync_redis: Optional[SyncRedis] = None


def _get_publish_client() -> SyncRedis:
    """Lazy-init sync Redis client for publishing."""
    global _sync_redis
    if _sync_redis is None:
        settings = get_settings()
        _sync_redis = SyncRedis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=settings.realtime_publish_timeout_seconds,
            socket_timeout=settings.realtime_publish_timeout_seconds,
        )
    return _sync_redis


def reset_publish_client() -> None:
    """Reset sync Redis client (for testing)."""
    global _sync_redis
    _sync_redis = None


class RealtimePublisher:
    """Pushes persisted records onto their live topic."""

    def __init__(self, client: Optional[SyncRedis] = None, enabled: Optional[bool] = None) -> None:
        self._client = client
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        if self._enabled is None:
            self._enabled = get_settings().realtime_enabled
        return self._enabled

    @property
    def client(self) -> SyncRedis:
        if self._client is None:
            self._client = _get_publish_client()
        return self._client

    def publish(self, topic: str, payload: dict) -> bool:
        """
        Publish a JSON payload on a topic.

        Returns True if Redis accepted the message. Failures are logged
        and reported as False, never raised.
        """
        if not self.enabled:
            return False
        try:
            self.client.publish(topic, json.dumps(payload, default=str))
            return True
        except RedisError:
            logger.warning("Live publish failed for topic=%s", topic, exc_info=True)
            return False


class Subscription:
    """
    A live listener on one topic.

    Lifecycle:
        sub = Subscription(redis, "messages:abc", handler, decode=message_from_row)
        await sub.start()
        ...
        await sub.unsubscribe()

    The handler receives decoded records (or raw dicts when no decoder is
    given). It may be a plain function or a coroutine function; either way it
    should hand off quickly instead of doing long work on the delivery path.
    """

    def __init__(
        self,
        redis: Redis,
        topic: str,
        handler: Handler,
        decode: Optional[Decoder] = None,
        retry_delays: Optional[list[int]] = None,
        ready_timeout: float = SUBSCRIPTION_READY_TIMEOUT_SECONDS,
    ) -> None:
        self._redis = redis
        self.topic = topic
        self._handler = handler
        self._decode = decode
        self._retry_delays = retry_delays or SUBSCRIPTION_RETRY_DELAYS
        self._ready_timeout = ready_timeout
        self._ready = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    @property
    def ready(self) -> bool:
        """True once the topic is subscribed on the server."""
        return self._ready.is_set()

    async def start(self) -> "Subscription":
        """
        Start the listener task and wait until the topic is subscribed.

        Redis does not buffer pub/sub messages, so anything published before
        SUBSCRIBE completes is lost. If the server cannot be reached within
        the ready timeout the subscription is returned anyway and keeps
        reconnecting in the background.
        """
        if self._task is None:
            self._active = True
            self._task = asyncio.create_task(self._run(), name=f"subscription:{self.topic}")
            try:
                await asyncio.wait_for(self._ready.wait(), timeout=self._ready_timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "Live channel %s not subscribed after %ss, still connecting",
                    self.topic,
                    self._ready_timeout,
                )
        return self

    async def unsubscribe(self) -> None:
        """Stop delivery. No callback runs after this returns."""
        self._active = False
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        attempt = 0
        while self._active:
            pubsub = self._redis.pubsub()
            try:
                await pubsub.subscribe(self.topic)
                self._ready.set()
                attempt = 0
                while self._active:
                    message = await pubsub.get_message(
                        ignore_subscribe_messages=True,
                        timeout=SUBSCRIPTION_POLL_TIMEOUT_SECONDS,
                    )
                    if message is None or message.get("type") != "message":
                        continue
                    await self._dispatch(message.get("data"))
            except RedisError as e:
                delay = self._retry_delays[min(attempt, len(self._retry_delays) - 1)]
                attempt += 1
                logger.warning(
                    "Live channel %s disconnected (attempt %d), retrying in %ss: %s",
                    self.topic,
                    attempt,
                    delay,
                    e,
                )
                await asyncio.sleep(delay)
            finally:
                await self._close(pubsub)

    async def _dispatch(self, data: Any) -> None:
        if not self._active:
            return
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        try:
            payload = json.loads(data)
            record = self._decode(payload) if self._decode else payload
        except (TypeError, ValueError):
            logger.warning("Dropping undecodable payload on %s", self.topic, exc_info=True)
            return

        try:
            result = self._handler(record)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Subscriber callback failed on %s", self.topic)

    async def _close(self, pubsub: Any) -> None:
        try:
            await pubsub.unsubscribe(self.topic)
            await pubsub.aclose()
        except RedisError:
            logger.debug("Ignoring error while closing pubsub for %s", self.topic, exc_info=True)


class RealtimeBus:
    """Opens Subscriptions on the shared async Redis client."""

    def __init__(self, redis: Optional[Redis] = None) -> None:
        self._redis = redis

    @property
    def redis(self) -> Redis:
        if self._redis is None:
            from mintchat.core.redis import get_redis

            self._redis = get_redis()
        return self._redis

    async def subscribe(
        self, topic: str, handler: Handler, decode: Optional[Decoder] = None
    ) -> Subscription:
        """Open and start a Subscription on a topic."""
        subscription = Subscription(self.redis, topic, handler, decode=decode)
        return await subscription.start()
