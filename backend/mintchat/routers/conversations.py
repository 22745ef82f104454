"""
Direct messaging API endpoints.

Handles:
- GET / - List the caller's conversations (inbox)
- POST / - Open (get or create) a conversation with another wallet
- POST /messages - Send a message to another wallet
- GET /with/{address}/messages - Message history with another wallet
- GET /{conversation_id}/messages - Paginated message history
- PUT /{conversation_id}/read - Mark a conversation as read
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from mintchat.core.constants import MAX_PAGE_SIZE, MESSAGES_PAGE_SIZE
from mintchat.core.identity import WalletUser, require_wallet_from_state
from mintchat.core.rate_limit import (
    MARK_READ_LIMIT,
    OPEN_CONVERSATION_LIMIT,
    READ_LIMIT,
    SEND_MESSAGE_LIMIT,
    limiter,
)
from mintchat.models.conversation import (
    ConversationListResponse,
    ConversationResponse,
    OpenConversationRequest,
)
from mintchat.models.message import (
    MarkReadResponse,
    MessagesResponse,
    SendMessageRequest,
    SendMessageResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_conversation_manager():
    """Dependency to get ConversationManager instance."""
    from mintchat.services.conversation_manager import ConversationManager

    return ConversationManager()


def get_message_channel():
    """Dependency to get MessageChannel instance."""
    from mintchat.services.message_channel import MessageChannel

    return MessageChannel()


# =============================================================================
# Static Routes (MUST come before parameterized routes)
# =============================================================================


@router.get("/", response_model=ConversationListResponse)
@limiter.limit(READ_LIMIT)
async def list_conversations(
    request: Request,
    wallet: WalletUser = Depends(require_wallet_from_state),
    conversation_manager=Depends(get_conversation_manager),
) -> ConversationListResponse:
    """List the caller's conversations, most recent activity first."""
    conversations = conversation_manager.list_for_user(wallet.address)
    return ConversationListResponse(conversations=conversations)


@router.post("/", response_model=ConversationResponse)
@limiter.limit(OPEN_CONVERSATION_LIMIT)
async def open_conversation(
    request: Request,
    body: OpenConversationRequest,
    wallet: WalletUser = Depends(require_wallet_from_state),
    conversation_manager=Depends(get_conversation_manager),
) -> ConversationResponse:
    """Get the conversation with another wallet, creating it on first contact."""
    conversation = conversation_manager.get_or_create(wallet.address, body.participant)
    return ConversationResponse(conversation=conversation)


@router.post("/messages", response_model=SendMessageResponse)
@limiter.limit(SEND_MESSAGE_LIMIT)
async def send_message(
    request: Request,
    body: SendMessageRequest,
    wallet: WalletUser = Depends(require_wallet_from_state),
    message_channel=Depends(get_message_channel),
) -> SendMessageResponse:
    """Send a message to another wallet."""
    message = message_channel.send(wallet.address, body.recipient, body.content, body.kind.value)
    return SendMessageResponse(message=message)


@router.get("/with/{address}/messages", response_model=MessagesResponse)
@limiter.limit(READ_LIMIT)
async def get_messages_with(
    request: Request,
    address: str,
    cursor: Optional[str] = Query(None, description="Pagination cursor (next_cursor of the previous page)"),
    limit: int = Query(MESSAGES_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description="Messages per page"),
    wallet: WalletUser = Depends(require_wallet_from_state),
    message_channel=Depends(get_message_channel),
) -> MessagesResponse:
    """Message history between the caller and another wallet (oldest first)."""
    return message_channel.history_between(wallet.address, address, limit=limit, before=cursor)


# =============================================================================
# Parameterized Routes
# =============================================================================


@router.get("/{conversation_id}/messages", response_model=MessagesResponse)
@limiter.limit(READ_LIMIT)
async def get_messages(
    request: Request,
    conversation_id: str,
    cursor: Optional[str] = Query(None, description="Pagination cursor (next_cursor of the previous page)"),
    limit: int = Query(MESSAGES_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description="Messages per page"),
    wallet: WalletUser = Depends(require_wallet_from_state),
    conversation_manager=Depends(get_conversation_manager),
    message_channel=Depends(get_message_channel),
) -> MessagesResponse:
    """Paginated messages for a conversation (oldest first within a page)."""
    conversation_manager.get_for_participant(conversation_id, wallet.address)
    return message_channel.history(conversation_id, limit=limit, before=cursor)


@router.put("/{conversation_id}/read", response_model=MarkReadResponse)
@limiter.limit(MARK_READ_LIMIT)
async def mark_read(
    request: Request,
    conversation_id: str,
    wallet: WalletUser = Depends(require_wallet_from_state),
    conversation_manager=Depends(get_conversation_manager),
    message_channel=Depends(get_message_channel),
) -> MarkReadResponse:
    """Mark every message addressed to the caller in a conversation as read."""
    conversation_manager.get_for_participant(conversation_id, wallet.address)
    marked = message_channel.mark_read(conversation_id, wallet.address)
    return MarkReadResponse(conversation_id=conversation_id, marked_read=marked)
