"""
Unread counts, derived on demand.

Nothing here is stored: every number is a count of matching message or
notification rows at the time of the call, so counts cannot drift from
the records they describe.
"""

from typing import Iterable, Optional

from mintchat.core.event_store import EventStore
from mintchat.models.notification import UnreadCounts


class UnreadAggregator:
    """Per-wallet unread totals across conversations and notifications."""

    def __init__(self, store: Optional[EventStore] = None) -> None:
        self._store = store

    @property
    def store(self) -> EventStore:
        if self._store is None:
            self._store = EventStore()
        return self._store

    def unread_for_conversation(self, conversation_id: str, identity: str) -> int:
        """Unread messages in one conversation addressed to `identity`."""
        return self.store.count(
            "messages",
            eq={"conversation_id": conversation_id, "recipient": identity, "is_read": False},
        )

    def unread_by_conversation(
        self, identity: str, conversation_ids: Iterable[str]
    ) -> dict[str, int]:
        """Unread counts for the given conversations (those with none are absent)."""
        counts = {}
        for conversation_id in conversation_ids:
            unread = self.unread_for_conversation(conversation_id, identity)
            if unread:
                counts[conversation_id] = unread
        return counts

    def total_unread_messages(self, identity: str) -> int:
        """Unread messages addressed to `identity` across every conversation."""
        return self.store.count("messages", eq={"recipient": identity, "is_read": False})

    def unread_notifications(self, identity: str) -> int:
        return self.store.count("notifications", eq={"recipient": identity, "is_read": False})

    def total_unread(self, identity: str) -> int:
        return self.total_unread_messages(identity) + self.unread_notifications(identity)

    def counts(self, identity: str) -> UnreadCounts:
        """Message, notification and combined totals in one snapshot."""
        messages = self.total_unread_messages(identity)
        notifications = self.unread_notifications(identity)
        return UnreadCounts(
            messages=messages,
            notifications=notifications,
            total=messages + notifications,
        )
