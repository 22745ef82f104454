"""
Application constants for Mintchat.

Centralizes limits, channel names and timing values used across the engine.
"""

# Message content
MESSAGE_MAX_LENGTH = 2000

# Pagination defaults
MESSAGES_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100
NOTIFICATIONS_PAGE_SIZE = 50

# Live channel topic prefixes: messages:{conversation_id}, notifications:{identity}
MESSAGES_TOPIC_PREFIX = "messages"
NOTIFICATIONS_TOPIC_PREFIX = "notifications"

# Subscription reconnect backoff (seconds); the last value repeats
SUBSCRIPTION_RETRY_DELAYS = [1, 2, 4, 8, 16, 30]
SUBSCRIPTION_POLL_TIMEOUT_SECONDS = 1.0
# How long start() waits for the first SUBSCRIBE before handing back a
# subscription that is still connecting
SUBSCRIPTION_READY_TIMEOUT_SECONDS = 5.0

# Display names derived from wallet addresses: "User {last 3}.stark"
DISPLAY_NAME_SUFFIX = ".stark"
DISPLAY_NAME_TAIL_LENGTH = 3

# Conversation summary text when nothing has been sent yet
EMPTY_CONVERSATION_PREVIEW = "No messages yet"

# Optimistic echo matching: a confirmed message replaces a pending one with the
# same sender and content created within this many seconds of it
OPTIMISTIC_MATCH_WINDOW_SECONDS = 30
TEMP_ID_PREFIX = "temp-"

# Marketplace listings are priced in this token
LISTING_CURRENCY = "STRK"

# "Time ago" refresh cadence
RECENT_REFRESH_SECONDS = 30
DEFAULT_REFRESH_SECONDS = 60
RECENT_THRESHOLD_MINUTES = 5
