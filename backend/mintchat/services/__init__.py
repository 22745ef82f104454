"""Business logic services for Mintchat API."""

from mintchat.services.conversation_manager import ConversationManager
from mintchat.services.message_channel import MessageChannel
from mintchat.services.notification_fanout import NotificationFanout
from mintchat.services.reaction_ledger import ReactionLedger
from mintchat.services.read_state import ReadStateTracker
from mintchat.services.timeline import ConversationTimeline
from mintchat.services.unread_aggregator import UnreadAggregator
from mintchat.services.unread_watcher import UnreadWatcher

__all__ = [
    "ConversationManager",
    "ConversationTimeline",
    "MessageChannel",
    "NotificationFanout",
    "ReactionLedger",
    "ReadStateTracker",
    "UnreadAggregator",
    "UnreadWatcher",
]
