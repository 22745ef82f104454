"""
Direct messaging between wallets.

Handles:
- Sending: validate, resolve the conversation, persist, update the summary,
  publish on messages:{conversation_id}, notify the recipient
- History pages (ascending) with a created_at cursor
- Live subscriptions per conversation
- Marking a conversation read for one participant

The message insert and the conversation summary update are two separate
writes. If the second one fails the message is still delivered and the
summary catches up on the next send.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from mintchat.core.constants import MAX_PAGE_SIZE, MESSAGE_MAX_LENGTH, MESSAGES_PAGE_SIZE
from mintchat.core.event_store import EventStore, PersistenceFailure
from mintchat.core.identity import normalize_identity
from mintchat.core.realtime import RealtimeBus, RealtimePublisher, Subscription
from mintchat.core.redis import LiveChannelKeys
from mintchat.models.message import (
    EmptyMessageError,
    InvalidMessageKindError,
    Message,
    MessageKind,
    MessagesResponse,
    MessageTooLongError,
    message_from_row,
)
from mintchat.services.conversation_manager import ConversationManager
from mintchat.services.notification_fanout import NotificationFanout
from mintchat.services.read_state import ReadStateTracker

logger = logging.getLogger(__name__)

CURSOR_SEPARATOR = "|"


class MessageChannel:
    """Service for sending, reading and streaming conversation messages."""

    def __init__(
        self,
        conversations: Optional[ConversationManager] = None,
        store: Optional[EventStore] = None,
        fanout: Optional[NotificationFanout] = None,
        read_state: Optional[ReadStateTracker] = None,
        publisher: Optional[RealtimePublisher] = None,
        bus: Optional[RealtimeBus] = None,
    ) -> None:
        self._store = store
        self._conversations = conversations
        self._fanout = fanout
        self._read_state = read_state
        self._publisher = publisher
        self._bus = bus

    @property
    def store(self) -> EventStore:
        if self._store is None:
            self._store = EventStore()
        return self._store

    @property
    def conversations(self) -> ConversationManager:
        if self._conversations is None:
            self._conversations = ConversationManager(self.store)
        return self._conversations

    @property
    def fanout(self) -> NotificationFanout:
        if self._fanout is None:
            self._fanout = NotificationFanout(self.store, self.publisher)
        return self._fanout

    @property
    def read_state(self) -> ReadStateTracker:
        if self._read_state is None:
            self._read_state = ReadStateTracker(self.store)
        return self._read_state

    @property
    def publisher(self) -> RealtimePublisher:
        if self._publisher is None:
            self._publisher = RealtimePublisher()
        return self._publisher

    @property
    def bus(self) -> RealtimeBus:
        if self._bus is None:
            self._bus = RealtimeBus()
        return self._bus

    # =========================================================================
    # Send
    # =========================================================================

    def send(
        self,
        sender: str,
        recipient: str,
        content: str,
        kind: str = MessageKind.TEXT.value,
    ) -> Message:
        """
        Send a message from one wallet to another.

        Flow:
        1. Validate content (non-blank, within MESSAGE_MAX_LENGTH)
        2. Resolve or create the canonical conversation
        3. Insert the message unread
        4. Update the conversation's last message (failure logged, not raised)
        5. Publish on the conversation's live channel
        6. Emit a chat notification unless sender == recipient

        Raises:
            EmptyMessageError: Content is blank
            MessageTooLongError: Content exceeds MESSAGE_MAX_LENGTH
            InvalidMessageKindError: Kind is not a MessageKind
            InvalidIdentityError: Sender or recipient is malformed
            PersistenceFailure: Conversation or message insert failed
        """
        self._validate_content(content)
        try:
            kind = MessageKind(kind).value
        except ValueError:
            raise InvalidMessageKindError(f"Unknown message kind: {kind}")
        sender = normalize_identity(sender)
        recipient = normalize_identity(recipient)

        conversation = self.conversations.get_or_create(sender, recipient)

        sent_at = datetime.now(timezone.utc).isoformat()
        row = self.store.insert(
            "messages",
            {
                "conversation_id": conversation.id,
                "sender": sender,
                "recipient": recipient,
                "content": content,
                "kind": kind,
                "is_read": False,
                "created_at": sent_at,
            },
        )
        message = message_from_row(row)

        try:
            self.conversations.record_last_message(conversation.id, content, sent_at)
        except PersistenceFailure:
            logger.warning(
                "Conversation summary update failed for %s, message %s was stored",
                conversation.id,
                message.id,
                exc_info=True,
                extra={"conversation_id": conversation.id},
            )

        self.publisher.publish(LiveChannelKeys.conversation(conversation.id), row)

        if recipient != sender:
            self.fanout.chat(recipient, sender)

        logger.info(
            "Message %s sent",
            message.id,
            extra={"wallet": sender, "conversation_id": conversation.id},
        )
        return message

    # =========================================================================
    # History
    # =========================================================================

    def history(
        self,
        conversation_id: str,
        limit: int = MESSAGES_PAGE_SIZE,
        before: Optional[str] = None,
    ) -> MessagesResponse:
        """
        One page of messages in ascending order.

        Pages walk backwards: pass the returned next_cursor as `before` to get
        the messages that precede this page. The cursor is "{created_at}|{id}"
        so messages sharing a timestamp are never skipped at a page boundary;
        a bare timestamp is accepted too.
        """
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        rows = self.store.find(
            "messages",
            eq={"conversation_id": conversation_id},
            before_key=_parse_cursor(before),
            order_by=["created_at", "id"],
            desc=True,
            limit=limit + 1,
        )

        has_more = len(rows) > limit
        rows = rows[:limit]
        rows.reverse()

        messages = [message_from_row(row) for row in rows]
        next_cursor = _cursor_for(rows[0]) if has_more and rows else None
        return MessagesResponse(messages=messages, has_more=has_more, next_cursor=next_cursor)

    def history_between(
        self,
        id_a: str,
        id_b: str,
        limit: int = MESSAGES_PAGE_SIZE,
        before: Optional[str] = None,
    ) -> MessagesResponse:
        """History of the conversation between two wallets (created if missing)."""
        conversation = self.conversations.get_or_create(id_a, id_b)
        return self.history(conversation.id, limit=limit, before=before)

    # =========================================================================
    # Live Delivery & Read State
    # =========================================================================

    async def subscribe(
        self, conversation_id: str, on_message: Callable[[Message], object]
    ) -> Subscription:
        """
        Listen for new messages in a conversation.

        Delivery is at-least-once and includes the subscriber's own sends from
        other sessions. Callers dedup by message id.
        """
        topic = LiveChannelKeys.conversation(conversation_id)
        return await self.bus.subscribe(topic, on_message, decode=message_from_row)

    def mark_read(self, conversation_id: str, reader: str) -> int:
        """Mark every message addressed to `reader` in the conversation as read."""
        return self.read_state.mark_messages_read(conversation_id, normalize_identity(reader))

    # =========================================================================
    # Private Helpers
    # =========================================================================

    @staticmethod
    def _validate_content(content: Optional[str]) -> None:
        if content is None or not content.strip():
            raise EmptyMessageError("Message content cannot be empty")
        if len(content) > MESSAGE_MAX_LENGTH:
            raise MessageTooLongError(
                f"Message content exceeds {MESSAGE_MAX_LENGTH} characters"
            )


def _cursor_for(row: dict) -> str:
    return f"{row['created_at']}{CURSOR_SEPARATOR}{row['id']}"


def _parse_cursor(cursor: Optional[str]) -> Optional[dict]:
    if not cursor:
        return None
    created_at, separator, message_id = cursor.rpartition(CURSOR_SEPARATOR)
    if not separator:
        return {"created_at": cursor}
    return {"created_at": created_at, "id": message_id}
