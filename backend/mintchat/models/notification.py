"""
Notification models.

Notifications are a closed set of variants, one per type, each carrying only
the references it needs:

    like          from_identity, related_post_id | related_asset_id (or neither for message likes)
    buy           from_identity (buyer), related_asset_id
    sell          related_asset_id
    chat          from_identity
    post_created  related_post_id
    nft_listed    related_asset_id

The `notifications` table stores all three reference columns; the mapping
function picks the variant by `type` and reads only that variant's columns.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

# ===========================================
# Enums
# ===========================================


class NotificationType(str, Enum):
    LIKE = "like"
    BUY = "buy"
    SELL = "sell"
    CHAT = "chat"
    POST_CREATED = "post_created"
    NFT_LISTED = "nft_listed"


REFERENCE_COLUMNS = ("from_identity", "related_asset_id", "related_post_id")


# ===========================================
# Variants
# ===========================================


class _NotificationBase(BaseModel):
    id: str
    recipient: str
    title: str
    message: str
    is_read: bool = False
    created_at: datetime


class LikeNotification(_NotificationBase):
    type: Literal["like"] = "like"
    from_identity: str
    related_post_id: Optional[str] = None
    related_asset_id: Optional[str] = None


class BuyNotification(_NotificationBase):
    type: Literal["buy"] = "buy"
    from_identity: str
    related_asset_id: str


class SellNotification(_NotificationBase):
    type: Literal["sell"] = "sell"
    related_asset_id: str


class ChatNotification(_NotificationBase):
    type: Literal["chat"] = "chat"
    from_identity: str


class PostCreatedNotification(_NotificationBase):
    type: Literal["post_created"] = "post_created"
    related_post_id: str


class NftListedNotification(_NotificationBase):
    type: Literal["nft_listed"] = "nft_listed"
    related_asset_id: str


Notification = Annotated[
    Union[
        LikeNotification,
        BuyNotification,
        SellNotification,
        ChatNotification,
        PostCreatedNotification,
        NftListedNotification,
    ],
    Field(discriminator="type"),
]

NOTIFICATION_VARIANTS: dict[str, type[_NotificationBase]] = {
    NotificationType.LIKE.value: LikeNotification,
    NotificationType.BUY.value: BuyNotification,
    NotificationType.SELL.value: SellNotification,
    NotificationType.CHAT.value: ChatNotification,
    NotificationType.POST_CREATED.value: PostCreatedNotification,
    NotificationType.NFT_LISTED.value: NftListedNotification,
}


def variant_for(notification_type: str) -> type[_NotificationBase]:
    """Return the model class for a notification type."""
    try:
        return NOTIFICATION_VARIANTS[notification_type]
    except KeyError:
        raise InvalidNotificationError(f"Unknown notification type: {notification_type}")


def check_references(notification_type: str, references: dict[str, Optional[str]]) -> None:
    """
    Validate reference columns against the variant before anything is written.

    Raises:
        InvalidNotificationError: A required reference is missing, or a
            reference the variant does not carry is set
    """
    variant = variant_for(notification_type)
    for column in REFERENCE_COLUMNS:
        value = references.get(column)
        field = variant.model_fields.get(column)
        if field is None:
            if value is not None:
                raise InvalidNotificationError(
                    f"{notification_type} notifications do not carry {column}"
                )
        elif field.is_required() and not value:
            raise InvalidNotificationError(f"{notification_type} notifications require {column}")


def notification_from_row(row: dict) -> Notification:
    """Map a `notifications` row to its variant."""
    variant = variant_for(row["type"])
    payload = {
        "id": str(row["id"]),
        "recipient": row["recipient"],
        "type": row["type"],
        "title": row["title"],
        "message": row["message"],
        "is_read": bool(row["is_read"]),
        "created_at": row["created_at"],
    }
    for column in REFERENCE_COLUMNS:
        if column in variant.model_fields:
            payload[column] = row[column]
    return variant.model_validate(payload)


class UnreadCounts(BaseModel):
    """Derived unread totals for one wallet."""

    messages: int = Field(0, ge=0)
    notifications: int = Field(0, ge=0)
    total: int = Field(0, ge=0)


# ===========================================
# Response Models
# ===========================================


class NotificationListResponse(BaseModel):
    notifications: list[Notification]
    unread: int = 0


class MarkNotificationReadResponse(BaseModel):
    notification_id: str
    changed: bool


class MarkAllReadResponse(BaseModel):
    marked_read: int


class DeleteNotificationResponse(BaseModel):
    notification_id: str
    message: str = "Notification deleted"


# ===========================================
# Exception Classes
# ===========================================


class NotificationServiceError(Exception):
    """Base exception for notification errors."""

    pass


class NotificationNotFoundError(NotificationServiceError):
    """Notification not found (or not addressed to the caller)."""

    pass


class InvalidNotificationError(NotificationServiceError):
    """Notification type and references do not match a known variant."""

    pass
