"""
Conversation resolution.

Handles:
- Canonical ordering of a participant pair (lowercase, lexicographic)
- Get-or-create, safe under concurrent first contact
- Inbox listing with the other participant and unread counts
- Recording the latest message on the conversation summary
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from mintchat.core.constants import EMPTY_CONVERSATION_PREVIEW
from mintchat.core.event_store import DuplicateRecordError, EventStore
from mintchat.core.identity import display_name_for, normalize_identity
from mintchat.core.time_format import format_time_ago
from mintchat.models.conversation import (
    Conversation,
    ConversationNotFoundError,
    ConversationSummary,
    NotConversationParticipantError,
    conversation_from_row,
)
from mintchat.services.unread_aggregator import UnreadAggregator

logger = logging.getLogger(__name__)


def canonical_pair(id_a: str, id_b: str) -> tuple[str, str]:
    """Normalize two identities and return them as (low, high)."""
    a = normalize_identity(id_a)
    b = normalize_identity(id_b)
    return (a, b) if a <= b else (b, a)


class ConversationManager:
    """Service for resolving and listing two-party conversations."""

    def __init__(
        self,
        store: Optional[EventStore] = None,
        unread: Optional[UnreadAggregator] = None,
    ) -> None:
        self._store = store
        self._unread = unread

    @property
    def store(self) -> EventStore:
        if self._store is None:
            self._store = EventStore()
        return self._store

    @property
    def unread(self) -> UnreadAggregator:
        if self._unread is None:
            self._unread = UnreadAggregator(self.store)
        return self._unread

    # =========================================================================
    # Public API
    # =========================================================================

    def get_or_create(self, id_a: str, id_b: str) -> Conversation:
        """
        Return the conversation between two identities, creating it on first contact.

        If another caller creates the same pair between our lookup and our
        insert, the unique (participant_low, participant_high) constraint
        rejects our insert and we return the row that won.

        Raises:
            InvalidIdentityError: Either identity is empty or malformed
            PersistenceFailure: Store unreachable
        """
        low, high = canonical_pair(id_a, id_b)

        existing = self._find_pair(low, high)
        if existing:
            return existing

        now = datetime.now(timezone.utc).isoformat()
        try:
            row = self.store.insert(
                "conversations",
                {
                    "participant_low": low,
                    "participant_high": high,
                    "last_message": None,
                    "last_message_at": now,
                },
            )
        except DuplicateRecordError:
            logger.info("Lost create race for conversation %s/%s, re-reading", low, high)
            existing = self._find_pair(low, high)
            if existing is None:
                raise
            return existing

        logger.info("Created conversation %s between %s and %s", row["id"], low, high)
        return conversation_from_row(row)

    def get(self, conversation_id: str) -> Conversation:
        """
        Fetch a conversation by id.

        Raises:
            ConversationNotFoundError: No such conversation
        """
        row = self.store.find_one("conversations", eq={"id": conversation_id})
        if row is None:
            raise ConversationNotFoundError(f"Conversation {conversation_id} not found")
        return conversation_from_row(row)

    def get_for_participant(self, conversation_id: str, identity: str) -> Conversation:
        """
        Fetch a conversation the caller takes part in.

        Raises:
            ConversationNotFoundError: No such conversation
            NotConversationParticipantError: Caller is not a participant
        """
        conversation = self.get(conversation_id)
        if not conversation.includes(normalize_identity(identity)):
            raise NotConversationParticipantError("You are not a participant in this conversation")
        return conversation

    def list_for_user(self, identity: str) -> list[ConversationSummary]:
        """
        All conversations of a wallet, most recent activity first.

        Each summary names the other participant and carries its unread count.
        """
        identity = normalize_identity(identity)
        rows = self.store.find(
            "conversations",
            either={"participant_low": identity, "participant_high": identity},
            order_by="last_message_at",
            desc=True,
        )
        if not rows:
            return []

        conversations = [conversation_from_row(row) for row in rows]
        unread_map = self.unread.unread_by_conversation(
            identity, [conversation.id for conversation in conversations]
        )
        now = datetime.now(timezone.utc)

        summaries = []
        for conversation in conversations:
            other = conversation.other_participant(identity)
            summaries.append(
                ConversationSummary(
                    id=conversation.id,
                    other_participant=other,
                    display_name=display_name_for(other),
                    last_message=conversation.last_message or EMPTY_CONVERSATION_PREVIEW,
                    last_message_at=conversation.last_message_at,
                    last_message_ago=format_time_ago(conversation.last_message_at, now),
                    unread_count=unread_map.get(conversation.id, 0),
                )
            )
        return summaries

    def record_last_message(self, conversation_id: str, content: str, sent_at: str) -> None:
        """Update the conversation summary after a new message was stored."""
        self.store.update(
            "conversations",
            {"last_message": content, "last_message_at": sent_at},
            eq={"id": conversation_id},
        )

    # =========================================================================
    # Private Helpers
    # =========================================================================

    def _find_pair(self, low: str, high: str) -> Optional[Conversation]:
        row = self.store.find_one(
            "conversations",
            eq={"participant_low": low, "participant_high": high},
        )
        return conversation_from_row(row) if row else None
