"""
Read-state tracking for messages and notifications.

is_read only ever moves false -> true. Every write here filters on
is_read = false and only ever sets true, so flips are idempotent and a
stale or repeated call can never un-read anything.
"""

import logging
from typing import Optional

from mintchat.core.event_store import EventStore

logger = logging.getLogger(__name__)


class ReadStateTracker:
    """Sole writer of the is_read flag."""

    def __init__(self, store: Optional[EventStore] = None) -> None:
        self._store = store

    @property
    def store(self) -> EventStore:
        if self._store is None:
            self._store = EventStore()
        return self._store

    @staticmethod
    def merge(current: bool, incoming: bool) -> bool:
        """Combine two observations of the same record's read flag."""
        return current or incoming

    def mark_messages_read(self, conversation_id: str, reader: str) -> int:
        """
        Flip every unread message in a conversation addressed to `reader`.

        Returns the number of messages flipped (0 when nothing was unread).
        """
        flipped = self.store.update(
            "messages",
            {"is_read": True},
            eq={"conversation_id": conversation_id, "recipient": reader, "is_read": False},
        )
        if flipped:
            logger.debug(
                "Marked %d messages read in conversation %s for %s",
                len(flipped),
                conversation_id,
                reader,
            )
        return len(flipped)

    def mark_notification_read(self, notification_id: str, recipient: Optional[str] = None) -> int:
        """Flip a single notification. Returns 1 if it changed, 0 if already read or absent."""
        eq = {"id": notification_id, "is_read": False}
        if recipient is not None:
            eq["recipient"] = recipient
        return len(self.store.update("notifications", {"is_read": True}, eq=eq))

    def mark_all_notifications_read(self, recipient: str) -> int:
        """Flip every unread notification for a wallet. Returns how many changed."""
        flipped = self.store.update(
            "notifications",
            {"is_read": True},
            eq={"recipient": recipient, "is_read": False},
        )
        return len(flipped)
