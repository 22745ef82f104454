"""
Notification fan-out.

Handles:
- Turning domain events (like, sale, listing, chat, post created) into
  notification records with deterministic text
- Pushing each new record onto notifications:{recipient}
- Listing, read flips and deletion for the recipient

emit() surfaces persistence errors. The per-event constructors are
best-effort: they are called as a side effect of another action (a message,
a like, a sale) and must never fail it, so they log and return None instead.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from mintchat.core.constants import LISTING_CURRENCY, NOTIFICATIONS_PAGE_SIZE
from mintchat.core.event_store import EventStore
from mintchat.core.identity import InvalidIdentityError, display_name_for, normalize_identity
from mintchat.core.realtime import RealtimeBus, RealtimePublisher, Subscription
from mintchat.core.redis import LiveChannelKeys
from mintchat.models.notification import (
    InvalidNotificationError,
    Notification,
    NotificationNotFoundError,
    NotificationType,
    check_references,
    notification_from_row,
)
from mintchat.models.reaction import ReactionTargetType
from mintchat.services.read_state import ReadStateTracker

logger = logging.getLogger(__name__)


class NotificationFanout:
    """Service for creating and delivering notifications."""

    def __init__(
        self,
        store: Optional[EventStore] = None,
        publisher: Optional[RealtimePublisher] = None,
        bus: Optional[RealtimeBus] = None,
        read_state: Optional[ReadStateTracker] = None,
    ) -> None:
        self._store = store
        self._publisher = publisher
        self._bus = bus
        self._read_state = read_state

    @property
    def store(self) -> EventStore:
        if self._store is None:
            self._store = EventStore()
        return self._store

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

    @property
    def read_state(self) -> ReadStateTracker:
        if self._read_state is None:
            self._read_state = ReadStateTracker(self.store)
        return self._read_state

    # =========================================================================
    # Emit
    # =========================================================================

    def emit(
        self,
        recipient: str,
        notification_type: str,
        title: str,
        message: str,
        *,
        from_identity: Optional[str] = None,
        related_asset_id: Optional[str] = None,
        related_post_id: Optional[str] = None,
    ) -> Notification:
        """
        Insert a notification and push it to the recipient's live channel.

        Raises:
            InvalidNotificationError: Unknown type, or references do not fit it
            PersistenceFailure: Store unreachable or insert rejected
        """
        recipient = normalize_identity(recipient)
        try:
            notification_type = NotificationType(notification_type).value
        except ValueError:
            raise InvalidNotificationError(f"Unknown notification type: {notification_type}")
        references = {
            "from_identity": normalize_identity(from_identity) if from_identity else None,
            "related_asset_id": related_asset_id,
            "related_post_id": related_post_id,
        }
        check_references(notification_type, references)

        row = self.store.insert(
            "notifications",
            {
                "recipient": recipient,
                "type": notification_type,
                "title": title,
                "message": message,
                "is_read": False,
                "created_at": datetime.now(timezone.utc).isoformat(),
                **references,
            },
        )
        notification = notification_from_row(row)

        self.publisher.publish(LiveChannelKeys.notifications(recipient), row)
        logger.info(
            "Emitted %s notification %s",
            notification_type,
            notification.id,
            extra={"wallet": recipient},
        )
        return notification

    # =========================================================================
    # Domain Event Constructors (best-effort)
    # =========================================================================

    def like(
        self,
        recipient: str,
        actor: str,
        target_type: str,
        target_id: str,
    ) -> Optional[Notification]:
        """Someone liked the recipient's post, asset or message. Never self-notifies."""
        if _same_identity(recipient, actor):
            return None

        post_id = target_id if target_type == ReactionTargetType.POST.value else None
        asset_id = target_id if target_type == ReactionTargetType.ASSET.value else None
        if target_type == ReactionTargetType.MESSAGE.value:
            liked = "your message"
        else:
            liked = f"your NFT #{target_id}"
        return self._best_effort(
            NotificationType.LIKE,
            lambda: self.emit(
                recipient,
                NotificationType.LIKE.value,
                "New Like",
                f"{display_name_for(normalize_identity(actor))} liked {liked}",
                from_identity=actor,
                related_post_id=post_id,
                related_asset_id=asset_id,
            ),
        )

    def buy(self, seller: str, buyer: str, asset_id: str) -> Optional[Notification]:
        """The seller's asset was bought."""
        return self._best_effort(
            NotificationType.BUY,
            lambda: self.emit(
                seller,
                NotificationType.BUY.value,
                "NFT Sold",
                f"{display_name_for(normalize_identity(buyer))} bought your NFT #{asset_id}",
                from_identity=buyer,
                related_asset_id=asset_id,
            ),
        )

    def sell(self, seller: str, asset_id: str) -> Optional[Notification]:
        """Confirmation to the seller that their listing went up."""
        return self._best_effort(
            NotificationType.SELL,
            lambda: self.emit(
                seller,
                NotificationType.SELL.value,
                "NFT Listed",
                f"You listed NFT #{asset_id} for sale",
                related_asset_id=asset_id,
            ),
        )

    def chat(self, recipient: str, sender: str) -> Optional[Notification]:
        """New message for the recipient. Never self-notifies."""
        if _same_identity(recipient, sender):
            return None
        return self._best_effort(
            NotificationType.CHAT,
            lambda: self.emit(
                recipient,
                NotificationType.CHAT.value,
                "New Message",
                f"You have unread messages from {display_name_for(normalize_identity(sender))}",
                from_identity=sender,
            ),
        )

    def post_created(self, owner: str, post_id: str) -> Optional[Notification]:
        return self._best_effort(
            NotificationType.POST_CREATED,
            lambda: self.emit(
                owner,
                NotificationType.POST_CREATED.value,
                "Post Created",
                f"Your NFT #{post_id} has been successfully created and minted!",
                related_post_id=post_id,
            ),
        )

    def nft_listed(self, owner: str, asset_id: str, price: str) -> Optional[Notification]:
        return self._best_effort(
            NotificationType.NFT_LISTED,
            lambda: self.emit(
                owner,
                NotificationType.NFT_LISTED.value,
                "NFT Listed for Sale",
                f"Your NFT #{asset_id} is now listed for sale at {price} {LISTING_CURRENCY}",
                related_asset_id=asset_id,
            ),
        )

    # =========================================================================
    # Recipient Operations
    # =========================================================================

    def list_for(
        self, identity: str, limit: int = NOTIFICATIONS_PAGE_SIZE
    ) -> list[Notification]:
        """Notifications for a wallet, newest first."""
        rows = self.store.find(
            "notifications",
            eq={"recipient": normalize_identity(identity)},
            order_by="created_at",
            desc=True,
            limit=limit,
        )
        return [notification_from_row(row) for row in rows]

    async def subscribe(
        self, identity: str, on_notification: Callable[[Notification], object]
    ) -> Subscription:
        """Push delivery of new notifications for a wallet. Consumers dedup by id."""
        topic = LiveChannelKeys.notifications(normalize_identity(identity))
        return await self.bus.subscribe(topic, on_notification, decode=notification_from_row)

    def mark_read(self, notification_id: str, recipient: Optional[str] = None) -> bool:
        """
        Flip one notification to read.

        Returns True if it changed, False if it was already read.

        Raises:
            NotificationNotFoundError: No such notification (for this recipient)
        """
        if recipient is not None:
            recipient = normalize_identity(recipient)
        changed = self.read_state.mark_notification_read(notification_id, recipient)
        if changed:
            return True

        self._require(notification_id, recipient)
        return False

    def mark_all_read(self, identity: str) -> int:
        """Flip every unread notification for a wallet. Idempotent."""
        return self.read_state.mark_all_notifications_read(normalize_identity(identity))

    def delete(self, notification_id: str, recipient: Optional[str] = None) -> None:
        """
        Hard-delete a notification.

        Raises:
            NotificationNotFoundError: No such notification (for this recipient)
        """
        eq = {"id": notification_id}
        if recipient is not None:
            eq["recipient"] = normalize_identity(recipient)
        deleted = self.store.delete("notifications", eq=eq)
        if not deleted:
            raise NotificationNotFoundError(f"Notification {notification_id} not found")
        logger.info("Deleted notification %s", notification_id)

    # =========================================================================
    # Private Helpers
    # =========================================================================

    def _best_effort(
        self, notification_type: NotificationType, build: Callable[[], Notification]
    ) -> Optional[Notification]:
        try:
            return build()
        except Exception:
            logger.warning(
                "Failed to emit %s notification", notification_type.value, exc_info=True
            )
            return None

    def _require(self, notification_id: str, recipient: Optional[str]) -> None:
        eq = {"id": notification_id}
        if recipient is not None:
            eq["recipient"] = recipient
        if self.store.find_one("notifications", eq=eq) is None:
            raise NotificationNotFoundError(f"Notification {notification_id} not found")


def _same_identity(a: Optional[str], b: Optional[str]) -> bool:
    try:
        return normalize_identity(a) == normalize_identity(b)
    except InvalidIdentityError:
        # Left for emit() to reject and log
        return False
