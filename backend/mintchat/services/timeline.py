"""
Client-side conversation timeline with optimistic sends.

Entries move Pending -> Confirmed or Pending -> Failed (-> Pending on retry).
A durable message reaches the timeline by two routes, the send() return
value and the live subscription, in either order and possibly more than
once. Both routes end in the same place:

- a pending placeholder is replaced by its confirmed message exactly once
- a message id already on the timeline is never added again
- is_read observations are merged, never reverted
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from mintchat.core.constants import OPTIMISTIC_MATCH_WINDOW_SECONDS, TEMP_ID_PREFIX
from mintchat.core.event_store import PersistenceFailure
from mintchat.core.identity import normalize_identity
from mintchat.core.time_format import parse_timestamp
from mintchat.models.message import (
    InvalidTimelineTransitionError,
    Message,
    MessageKind,
    MessageState,
    TimelineEntry,
    TimelineEntryNotFoundError,
)
from mintchat.services.message_channel import MessageChannel
from mintchat.services.read_state import ReadStateTracker

logger = logging.getLogger(__name__)


def new_temp_id() -> str:
    return f"{TEMP_ID_PREFIX}{uuid.uuid4().hex}"


class ConversationTimeline:
    """The visible message list of one conversation for one wallet."""

    def __init__(self, conversation_id: str, identity: str) -> None:
        self.conversation_id = conversation_id
        self.identity = normalize_identity(identity)
        # Keyed by entry id: temp id while pending/failed, message id once confirmed
        self._entries: dict[str, TimelineEntry] = {}
        # temp id -> id of the durable message that took its placeholder
        self._reconciled: dict[str, str] = {}

    # =========================================================================
    # Read
    # =========================================================================

    def entries(self) -> list[TimelineEntry]:
        """Visible entries in creation order."""
        return sorted(self._entries.values(), key=lambda entry: parse_timestamp(entry.created_at))

    def get(self, entry_id: str) -> Optional[TimelineEntry]:
        return self._entries.get(entry_id)

    # =========================================================================
    # Optimistic Send
    # =========================================================================

    def add_pending(
        self,
        content: str,
        kind: str = MessageKind.TEXT.value,
        temp_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> TimelineEntry:
        """Show a message immediately, before the store has confirmed it."""
        temp_id = temp_id or new_temp_id()
        entry = TimelineEntry(
            id=temp_id,
            temp_id=temp_id,
            state=MessageState.PENDING,
            sender=self.identity,
            content=content,
            kind=MessageKind(kind),
            created_at=created_at or datetime.now(timezone.utc),
        )
        self._entries[temp_id] = entry
        return entry

    def confirm(self, temp_id: str, message: Message) -> TimelineEntry:
        """
        Replace a pending placeholder with its durable message.

        Safe to call after the subscription already delivered the message:
        the placeholder is gone by then and the confirmed entry is returned.
        Also safe when an identical message from another session of the same
        wallet arrived first and took the placeholder: the durable message is
        then added as its own confirmed entry.

        Raises:
            TimelineEntryNotFoundError: No entry was ever created for temp_id
            InvalidTimelineTransitionError: The entry is not pending
        """
        existing = self._entries.get(message.id)
        placeholder = self._entries.get(temp_id)

        if placeholder is None:
            claimed_by = self._reconciled.pop(temp_id, None)
            if existing is not None:
                if claimed_by is not None and claimed_by != message.id:
                    self._release_temp_id(claimed_by)
                return existing
            if claimed_by is None:
                raise TimelineEntryNotFoundError(f"No timeline entry {temp_id}")
            self._release_temp_id(claimed_by)
            logger.debug(
                "Placeholder %s was taken by %s, adding %s", temp_id, claimed_by, message.id
            )
            confirmed = self._confirmed_entry(message, temp_id=temp_id)
            self._entries[message.id] = confirmed
            return confirmed
        if placeholder.state != MessageState.PENDING:
            raise InvalidTimelineTransitionError(
                f"Cannot confirm entry {temp_id} in state {placeholder.state.value}"
            )

        del self._entries[temp_id]
        confirmed = self._confirmed_entry(message, temp_id=temp_id)
        if existing is not None:
            confirmed.is_read = ReadStateTracker.merge(existing.is_read, confirmed.is_read)
        self._entries[message.id] = confirmed
        return confirmed

    def fail(self, temp_id: str, error: str) -> TimelineEntry:
        """
        Mark a pending send as failed, keeping its content for retry.

        Raises:
            TimelineEntryNotFoundError: No such entry
            InvalidTimelineTransitionError: The entry is not pending
        """
        entry = self._require(temp_id)
        if entry.state != MessageState.PENDING:
            raise InvalidTimelineTransitionError(
                f"Cannot fail entry {temp_id} in state {entry.state.value}"
            )
        failed = entry.model_copy(update={"state": MessageState.FAILED, "error": error})
        self._entries[temp_id] = failed
        return failed

    def retry(self, temp_id: str) -> TimelineEntry:
        """
        Put a failed entry back to pending with its original content.

        Raises:
            TimelineEntryNotFoundError: No such entry
            InvalidTimelineTransitionError: The entry has not failed
        """
        entry = self._require(temp_id)
        if not entry.retryable:
            raise InvalidTimelineTransitionError(
                f"Cannot retry entry {temp_id} in state {entry.state.value}"
            )
        pending = entry.model_copy(
            update={
                "state": MessageState.PENDING,
                "error": None,
                "created_at": datetime.now(timezone.utc),
            }
        )
        self._entries[temp_id] = pending
        return pending

    def discard(self, temp_id: str) -> None:
        """Drop a placeholder that will never be sent."""
        self._entries.pop(temp_id, None)
        self._reconciled.pop(temp_id, None)

    # =========================================================================
    # Durable Messages
    # =========================================================================

    def observe(self, message: Message) -> bool:
        """
        Apply a durable message from history or the live channel.

        Returns True if the message became newly visible, False if it was a
        duplicate delivery or replaced one of our own placeholders.
        """
        if message.conversation_id != self.conversation_id:
            return False

        existing = self._entries.get(message.id)
        if existing is not None:
            merged = ReadStateTracker.merge(existing.is_read, message.is_read)
            if merged != existing.is_read:
                self._entries[message.id] = existing.model_copy(update={"is_read": merged})
            return False

        placeholder = self._match_pending(message)
        if placeholder is not None:
            del self._entries[placeholder.id]
            self._reconciled[placeholder.id] = message.id
            self._entries[message.id] = self._confirmed_entry(message, temp_id=placeholder.id)
            logger.debug("Reconciled %s with message %s", placeholder.id, message.id)
            return False

        self._entries[message.id] = self._confirmed_entry(message)
        return True

    def load(self, messages: list[Message]) -> int:
        """Apply a page of history. Returns how many entries were new."""
        return sum(1 for message in messages if self.observe(message))

    def mark_all_read(self) -> None:
        """Reflect a local mark-read of messages addressed to this wallet."""
        for entry_id, entry in list(self._entries.items()):
            if entry.state == MessageState.CONFIRMED and entry.sender != self.identity:
                self._entries[entry_id] = entry.model_copy(update={"is_read": True})

    # =========================================================================
    # Send Through A Channel
    # =========================================================================

    def send_via(
        self,
        channel: MessageChannel,
        recipient: str,
        content: str,
        kind: str = MessageKind.TEXT.value,
    ) -> Message:
        """
        Optimistically send a message: add a placeholder, send, reconcile.

        Raises:
            PersistenceFailure: The entry is left Failed for retry
        """
        entry = self.add_pending(content, kind)
        return self._deliver(channel, entry, recipient)

    def retry_via(self, channel: MessageChannel, temp_id: str, recipient: str) -> Message:
        """Resend a failed entry."""
        entry = self.retry(temp_id)
        return self._deliver(channel, entry, recipient)

    # =========================================================================
    # Private Helpers
    # =========================================================================

    def _deliver(self, channel: MessageChannel, entry: TimelineEntry, recipient: str) -> Message:
        try:
            message = channel.send(self.identity, recipient, entry.content, entry.kind.value)
        except PersistenceFailure as e:
            self.fail(entry.id, str(e))
            raise
        except Exception:
            self.discard(entry.id)
            raise
        self.confirm(entry.id, message)
        return message

    def _require(self, temp_id: str) -> TimelineEntry:
        entry = self._entries.get(temp_id)
        if entry is None:
            raise TimelineEntryNotFoundError(f"No timeline entry {temp_id}")
        return entry

    def _release_temp_id(self, entry_id: str) -> None:
        entry = self._entries.get(entry_id)
        if entry is not None:
            self._entries[entry_id] = entry.model_copy(update={"temp_id": None})

    def _match_pending(self, message: Message) -> Optional[TimelineEntry]:
        if normalize_identity(message.sender) != self.identity:
            return None
        sent_at = parse_timestamp(message.created_at)
        candidates = [
            entry
            for entry in self._entries.values()
            if entry.state == MessageState.PENDING
            and entry.content == message.content
            and abs((parse_timestamp(entry.created_at) - sent_at).total_seconds())
            <= OPTIMISTIC_MATCH_WINDOW_SECONDS
        ]
        if not candidates:
            return None
        return min(candidates, key=lambda entry: parse_timestamp(entry.created_at))

    @staticmethod
    def _confirmed_entry(message: Message, temp_id: Optional[str] = None) -> TimelineEntry:
        return TimelineEntry(
            id=message.id,
            temp_id=temp_id,
            state=MessageState.CONFIRMED,
            sender=message.sender,
            content=message.content,
            kind=message.kind,
            created_at=message.created_at,
            is_read=message.is_read,
        )
