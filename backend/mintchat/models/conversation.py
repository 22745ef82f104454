"""
Conversation models.

A conversation is the canonical thread between two wallet identities:
participant_low < participant_high (lexicographic, lowercase), so (A, B)
and (B, A) resolve to the same row.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# ===========================================
# Records
# ===========================================


class Conversation(BaseModel):
    """A stored conversation row."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    participant_low: str
    participant_high: str
    last_message: Optional[str] = None
    last_message_at: datetime

    def includes(self, identity: str) -> bool:
        return identity in (self.participant_low, self.participant_high)

    def other_participant(self, identity: str) -> str:
        """The participant that is not `identity` (itself for a self-conversation)."""
        if identity == self.participant_low:
            return self.participant_high
        return self.participant_low


def conversation_from_row(row: dict) -> Conversation:
    """Map a `conversations` row to a Conversation."""
    return Conversation(
        id=str(row["id"]),
        participant_low=row["participant_low"],
        participant_high=row["participant_high"],
        last_message=row["last_message"],
        last_message_at=row["last_message_at"],
    )


class ConversationSummary(BaseModel):
    """A conversation as seen from one participant's inbox."""

    id: str
    other_participant: str
    display_name: str
    last_message: str
    last_message_at: datetime
    last_message_ago: str
    unread_count: int = Field(0, ge=0)


# ===========================================
# Request Models
# ===========================================


class OpenConversationRequest(BaseModel):
    """Open (get or create) a conversation with another wallet."""

    participant: str = Field(..., min_length=1)


# ===========================================
# Response Models
# ===========================================


class ConversationResponse(BaseModel):
    conversation: Conversation


class ConversationListResponse(BaseModel):
    conversations: list[ConversationSummary]


# ===========================================
# Exception Classes
# ===========================================


class ConversationServiceError(Exception):
    """Base exception for conversation errors."""

    pass


class ConversationNotFoundError(ConversationServiceError):
    """Conversation not found."""

    pass


class NotConversationParticipantError(ConversationServiceError):
    """Caller is not one of the two participants."""

    pass
