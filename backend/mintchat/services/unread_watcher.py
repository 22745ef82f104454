"""
Live unread counts for one wallet.

Subscribes to the wallet's notification topic and to every conversation it
takes part in, and recomputes the counts from the store whenever something
arrives or the wallet marks something read. Counts are never incremented
locally, so a missed or duplicated push only delays the number, it never
makes it wrong.
"""

import asyncio
import inspect
import logging
from typing import Callable, Optional

from mintchat.core.identity import normalize_identity
from mintchat.core.realtime import Subscription
from mintchat.models.message import Message
from mintchat.models.notification import Notification, NotificationType, UnreadCounts
from mintchat.services.conversation_manager import ConversationManager
from mintchat.services.message_channel import MessageChannel
from mintchat.services.notification_fanout import NotificationFanout
from mintchat.services.unread_aggregator import UnreadAggregator

logger = logging.getLogger(__name__)

CountsListener = Callable[[UnreadCounts], object]


class UnreadWatcher:
    """Keeps an UnreadCounts snapshot current for one wallet."""

    def __init__(
        self,
        identity: str,
        aggregator: UnreadAggregator,
        conversations: ConversationManager,
        channel: MessageChannel,
        fanout: NotificationFanout,
        on_change: Optional[CountsListener] = None,
    ) -> None:
        self.identity = normalize_identity(identity)
        self._aggregator = aggregator
        self._conversations = conversations
        self._channel = channel
        self._fanout = fanout
        self._on_change = on_change
        self._counts = UnreadCounts()
        self._notification_sub: Optional[Subscription] = None
        self._conversation_subs: dict[str, Subscription] = {}
        self._lock = asyncio.Lock()

    @property
    def counts(self) -> UnreadCounts:
        """Latest computed snapshot."""
        return self._counts

    @property
    def watched_conversations(self) -> list[str]:
        return list(self._conversation_subs)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> UnreadCounts:
        """Open the live subscriptions and compute the first snapshot."""
        if self._notification_sub is None:
            self._notification_sub = await self._fanout.subscribe(
                self.identity, self._on_notification
            )
        await self.sync_conversations()
        return await self.refresh()

    async def stop(self) -> None:
        """Close every subscription. No refresh is triggered after this returns."""
        subscriptions = list(self._conversation_subs.values())
        if self._notification_sub is not None:
            subscriptions.append(self._notification_sub)
        self._conversation_subs = {}
        self._notification_sub = None
        for subscription in subscriptions:
            await subscription.unsubscribe()

    # =========================================================================
    # Refresh
    # =========================================================================

    async def refresh(self) -> UnreadCounts:
        """Recompute counts from the store and notify the listener if they changed."""
        async with self._lock:
            counts = await asyncio.to_thread(self._aggregator.counts, self.identity)
            changed = counts != self._counts
            self._counts = counts

        if changed and self._on_change is not None:
            result = self._on_change(counts)
            if inspect.isawaitable(result):
                await result
        return counts

    async def sync_conversations(self) -> list[str]:
        """Subscribe to conversations the wallet joined since the last sync."""
        summaries = await asyncio.to_thread(self._conversations.list_for_user, self.identity)
        added = []
        for summary in summaries:
            if summary.id in self._conversation_subs:
                continue
            self._conversation_subs[summary.id] = await self._channel.subscribe(
                summary.id, self._on_message
            )
            added.append(summary.id)
        if added:
            logger.debug("Watching %d new conversations for %s", len(added), self.identity)
        return added

    # =========================================================================
    # Local Read Actions
    # =========================================================================

    async def mark_conversation_read(self, conversation_id: str) -> int:
        flipped = await asyncio.to_thread(self._channel.mark_read, conversation_id, self.identity)
        await self.refresh()
        return flipped

    async def mark_notification_read(self, notification_id: str) -> bool:
        changed = await asyncio.to_thread(
            self._fanout.mark_read, notification_id, self.identity
        )
        await self.refresh()
        return changed

    async def mark_all_notifications_read(self) -> int:
        flipped = await asyncio.to_thread(self._fanout.mark_all_read, self.identity)
        await self.refresh()
        return flipped

    # =========================================================================
    # Live Handlers
    # =========================================================================

    async def _on_notification(self, notification: Notification) -> None:
        # A chat notification may be the first sign of a brand-new conversation
        if notification.type == NotificationType.CHAT.value:
            await self.sync_conversations()
        await self.refresh()

    async def _on_message(self, message: Message) -> None:
        if message.recipient == self.identity:
            await self.refresh()
