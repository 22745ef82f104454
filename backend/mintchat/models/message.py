"""
Message models.

Covers the durable message record, the request/response shapes of the
messaging API, and the client-side timeline entries used for optimistic
sends (Pending -> Confirmed | Failed).
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from mintchat.core.constants import MESSAGE_MAX_LENGTH

# ===========================================
# Enums
# ===========================================


class MessageKind(str, Enum):
    """What the message content refers to."""

    TEXT = "text"
    ASSET_REF = "asset-ref"
    TRADE_REF = "trade-ref"


class MessageState(str, Enum):
    """Client-visible state of a timeline entry."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


# ===========================================
# Records
# ===========================================


class Message(BaseModel):
    """A stored message. Content and sender never change after insert."""

    model_config = ConfigDict(frozen=True)

    id: str
    conversation_id: str
    sender: str
    recipient: str
    content: str
    kind: MessageKind = MessageKind.TEXT
    created_at: datetime
    is_read: bool = False


def message_from_row(row: dict) -> Message:
    """Map a `messages` row to a Message."""
    return Message(
        id=str(row["id"]),
        conversation_id=str(row["conversation_id"]),
        sender=row["sender"],
        recipient=row["recipient"],
        content=row["content"],
        kind=MessageKind(row["kind"]),
        created_at=row["created_at"],
        is_read=bool(row["is_read"]),
    )


class TimelineEntry(BaseModel):
    """One visible line of a conversation on the client."""

    id: str
    state: MessageState
    sender: str
    content: str
    kind: MessageKind = MessageKind.TEXT
    created_at: datetime
    is_read: bool = False
    temp_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def retryable(self) -> bool:
        return self.state == MessageState.FAILED


# ===========================================
# Request Models
# ===========================================


class SendMessageRequest(BaseModel):
    """Send a message to another wallet."""

    recipient: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1, max_length=MESSAGE_MAX_LENGTH)
    kind: MessageKind = MessageKind.TEXT


# ===========================================
# Response Models
# ===========================================


class SendMessageResponse(BaseModel):
    message: Message


class MessagesResponse(BaseModel):
    """Messages in ascending order, with a cursor for the previous page."""

    messages: list[Message]
    has_more: bool = False
    next_cursor: Optional[str] = None


class MarkReadResponse(BaseModel):
    conversation_id: str
    marked_read: int


# ===========================================
# Exception Classes
# ===========================================


class MessageServiceError(Exception):
    """Base exception for message errors."""

    pass


class EmptyMessageError(MessageServiceError):
    """Message content is empty or whitespace."""

    pass


class MessageTooLongError(MessageServiceError):
    """Message content exceeds MESSAGE_MAX_LENGTH."""

    pass


class InvalidMessageKindError(MessageServiceError):
    """Message kind is not one of MessageKind."""

    pass


class TimelineEntryNotFoundError(MessageServiceError):
    """No timeline entry with that temporary id."""

    pass


class InvalidTimelineTransitionError(MessageServiceError):
    """Entry is not in a state that allows the requested transition."""

    pass
