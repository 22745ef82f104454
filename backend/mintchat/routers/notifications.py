"""
Notification API endpoints.

Handles:
- GET / - List the caller's notifications (newest first)
- GET /unread-counts - Unread messages, notifications and combined total
- PUT /read-all - Mark every notification read
- PUT /{notification_id}/read - Mark one notification read
- DELETE /{notification_id} - Delete a notification
"""

import logging

from fastapi import APIRouter, Depends, Query, Request

from mintchat.core.constants import MAX_PAGE_SIZE, NOTIFICATIONS_PAGE_SIZE
from mintchat.core.identity import WalletUser, require_wallet_from_state
from mintchat.core.rate_limit import (
    MARK_READ_LIMIT,
    NOTIFICATION_WRITE_LIMIT,
    POLL_LIMIT,
    READ_LIMIT,
    limiter,
)
from mintchat.models.notification import (
    DeleteNotificationResponse,
    MarkAllReadResponse,
    MarkNotificationReadResponse,
    NotificationListResponse,
    UnreadCounts,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_notification_fanout():
    """Dependency to get NotificationFanout instance."""
    from mintchat.services.notification_fanout import NotificationFanout

    return NotificationFanout()


def get_unread_aggregator():
    """Dependency to get UnreadAggregator instance."""
    from mintchat.services.unread_aggregator import UnreadAggregator

    return UnreadAggregator()


# =============================================================================
# Static Routes (MUST come before parameterized routes)
# =============================================================================


@router.get("/", response_model=NotificationListResponse)
@limiter.limit(READ_LIMIT)
async def list_notifications(
    request: Request,
    limit: int = Query(NOTIFICATIONS_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    wallet: WalletUser = Depends(require_wallet_from_state),
    notification_fanout=Depends(get_notification_fanout),
    unread_aggregator=Depends(get_unread_aggregator),
) -> NotificationListResponse:
    """List the caller's notifications with the number still unread."""
    notifications = notification_fanout.list_for(wallet.address, limit=limit)
    unread = unread_aggregator.unread_notifications(wallet.address)
    return NotificationListResponse(notifications=notifications, unread=unread)


@router.get("/unread-counts", response_model=UnreadCounts)
@limiter.limit(POLL_LIMIT)
async def get_unread_counts(
    request: Request,
    wallet: WalletUser = Depends(require_wallet_from_state),
    unread_aggregator=Depends(get_unread_aggregator),
) -> UnreadCounts:
    """Unread message and notification counts, recomputed on every call."""
    return unread_aggregator.counts(wallet.address)


@router.put("/read-all", response_model=MarkAllReadResponse)
@limiter.limit(NOTIFICATION_WRITE_LIMIT)
async def mark_all_read(
    request: Request,
    wallet: WalletUser = Depends(require_wallet_from_state),
    notification_fanout=Depends(get_notification_fanout),
) -> MarkAllReadResponse:
    """Mark every unread notification of the caller as read."""
    marked = notification_fanout.mark_all_read(wallet.address)
    return MarkAllReadResponse(marked_read=marked)


# =============================================================================
# Parameterized Routes
# =============================================================================


@router.put("/{notification_id}/read", response_model=MarkNotificationReadResponse)
@limiter.limit(MARK_READ_LIMIT)
async def mark_read(
    request: Request,
    notification_id: str,
    wallet: WalletUser = Depends(require_wallet_from_state),
    notification_fanout=Depends(get_notification_fanout),
) -> MarkNotificationReadResponse:
    """Mark one notification read. Already-read notifications report changed=false."""
    changed = notification_fanout.mark_read(notification_id, wallet.address)
    return MarkNotificationReadResponse(notification_id=notification_id, changed=changed)


@router.delete("/{notification_id}", response_model=DeleteNotificationResponse)
@limiter.limit(NOTIFICATION_WRITE_LIMIT)
async def delete_notification(
    request: Request,
    notification_id: str,
    wallet: WalletUser = Depends(require_wallet_from_state),
    notification_fanout=Depends(get_notification_fanout),
) -> DeleteNotificationResponse:
    """Delete one of the caller's notifications."""
    notification_fanout.delete(notification_id, wallet.address)
    return DeleteNotificationResponse(notification_id=notification_id)
