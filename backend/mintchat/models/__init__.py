"""Pydantic models for Mintchat API."""

from mintchat.models.conversation import (
    Conversation,
    ConversationNotFoundError,
    ConversationServiceError,
    ConversationSummary,
    NotConversationParticipantError,
    conversation_from_row,
)
from mintchat.models.message import (
    EmptyMessageError,
    InvalidMessageKindError,
    Message,
    MessageKind,
    MessageServiceError,
    MessageState,
    MessageTooLongError,
    TimelineEntry,
    message_from_row,
)
from mintchat.models.notification import (
    InvalidNotificationError,
    Notification,
    NotificationNotFoundError,
    NotificationServiceError,
    NotificationType,
    UnreadCounts,
    notification_from_row,
)
from mintchat.models.reaction import (
    InvalidReactionTargetError,
    Reaction,
    ReactionServiceError,
    ReactionTargetType,
    ToggleResult,
    reaction_from_row,
)

__all__ = [
    # Conversation models
    "Conversation",
    "ConversationNotFoundError",
    "ConversationServiceError",
    "ConversationSummary",
    "NotConversationParticipantError",
    "conversation_from_row",
    # Message models
    "EmptyMessageError",
    "InvalidMessageKindError",
    "Message",
    "MessageKind",
    "MessageServiceError",
    "MessageState",
    "MessageTooLongError",
    "TimelineEntry",
    "message_from_row",
    # Notification models
    "InvalidNotificationError",
    "Notification",
    "NotificationNotFoundError",
    "NotificationServiceError",
    "NotificationType",
    "UnreadCounts",
    "notification_from_row",
    # Reaction models
    "InvalidReactionTargetError",
    "Reaction",
    "ReactionServiceError",
    "ReactionTargetType",
    "ToggleResult",
    "reaction_from_row",
]
