"""
WebSocket bridges onto the live channels.

Endpoints:
- WS /ws/conversations/{conversation_id}?wallet=... - New messages of one conversation
- WS /ws/notifications?wallet=... - New notifications for the wallet

Browsers cannot set custom headers on a WebSocket handshake, so the wallet
address comes from the query string. Each connection owns one Subscription
that is closed when the socket goes away. Frames are JSON records; clients
dedup by id because delivery is at-least-once.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from mintchat.core.identity import InvalidIdentityError, normalize_identity
from mintchat.core.realtime import Subscription
from mintchat.models.conversation import ConversationServiceError

router = APIRouter()
logger = logging.getLogger(__name__)

# Application close codes (4000-4999)
WS_INVALID_IDENTITY = 4401
WS_FORBIDDEN = 4403


def get_conversation_manager():
    """Dependency to get ConversationManager instance."""
    from mintchat.services.conversation_manager import ConversationManager

    return ConversationManager()


def get_message_channel():
    """Dependency to get MessageChannel instance."""
    from mintchat.services.message_channel import MessageChannel

    return MessageChannel()


def get_notification_fanout():
    """Dependency to get NotificationFanout instance."""
    from mintchat.services.notification_fanout import NotificationFanout

    return NotificationFanout()


async def _identify(websocket: WebSocket) -> Optional[str]:
    try:
        return normalize_identity(websocket.query_params.get("wallet"))
    except InvalidIdentityError:
        await websocket.close(code=WS_INVALID_IDENTITY)
        return None


async def _pump(websocket: WebSocket, subscription: Subscription) -> None:
    """Hold the socket open until the client leaves, then drop the subscription."""
    try:
        while True:
            # Client frames are ignored; receiving is how we notice the disconnect
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Client left %s", subscription.topic)
    finally:
        await subscription.unsubscribe()


@router.websocket("/ws/conversations/{conversation_id}")
async def conversation_socket(
    websocket: WebSocket,
    conversation_id: str,
    conversation_manager=Depends(get_conversation_manager),
    message_channel=Depends(get_message_channel),
):
    identity = await _identify(websocket)
    if identity is None:
        return
    try:
        conversation_manager.get_for_participant(conversation_id, identity)
    except ConversationServiceError:
        await websocket.close(code=WS_FORBIDDEN)
        return

    await websocket.accept()

    async def forward(message) -> None:
        await websocket.send_json(message.model_dump(mode="json"))

    subscription = await message_channel.subscribe(conversation_id, forward)
    logger.info(
        "Live conversation socket opened",
        extra={"wallet": identity, "conversation_id": conversation_id},
    )
    await _pump(websocket, subscription)


@router.websocket("/ws/notifications")
async def notification_socket(
    websocket: WebSocket,
    notification_fanout=Depends(get_notification_fanout),
):
    identity = await _identify(websocket)
    if identity is None:
        return

    await websocket.accept()

    async def forward(notification) -> None:
        await websocket.send_json(notification.model_dump(mode="json"))

    subscription = await notification_fanout.subscribe(identity, forward)
    logger.info("Live notification socket opened", extra={"wallet": identity})
    await _pump(websocket, subscription)
