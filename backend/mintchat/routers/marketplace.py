"""
Marketplace event webhooks.

The marketplace reports on-chain activity here and Mintchat turns it into
notifications for the wallets involved.

Endpoints:
- POST /sale: Asset sold (buy notification to the seller)
- POST /listing: Asset listed (nft_listed with a price, sell without)
- POST /post-created: Post minted (post_created notification to the owner)
- POST /cancellation: Listing withdrawn (logged, no notification type exists)

Security: when MARKETPLACE_WEBHOOK_SECRET is set, every request must carry
it in the X-Marketplace-Secret header.

Notification delivery is best-effort, so a webhook is accepted even when no
notification could be written; notification_ids lists the ones that were.
"""

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from mintchat.core.config import get_settings
from mintchat.models.marketplace import (
    CancellationEvent,
    ListingEvent,
    MarketplaceEventResponse,
    PostCreatedEvent,
    SaleEvent,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def get_notification_fanout():
    """Dependency to get NotificationFanout instance."""
    from mintchat.services.notification_fanout import NotificationFanout

    return NotificationFanout()


async def verify_marketplace_secret(
    x_marketplace_secret: Optional[str] = Header(None),
) -> None:
    """Reject webhook calls without the shared secret (skipped when none is configured)."""
    expected = get_settings().marketplace_webhook_secret
    if not expected:
        logger.warning("Marketplace webhook received without a configured secret - not validated")
        return
    if not x_marketplace_secret or not hmac.compare_digest(x_marketplace_secret, expected):
        logger.error("Marketplace webhook secret mismatch")
        raise HTTPException(status_code=401, detail="Invalid webhook secret")


def _accepted(*notifications) -> MarketplaceEventResponse:
    ids = [n.id for n in notifications if n is not None]
    detail = None if ids else "No notification was created"
    return MarketplaceEventResponse(notification_ids=ids, detail=detail)


# =============================================================================
# Event Handlers
# =============================================================================


@router.post("/sale", response_model=MarketplaceEventResponse)
async def sale_event(
    request: Request,
    body: SaleEvent,
    _: None = Depends(verify_marketplace_secret),
    notification_fanout=Depends(get_notification_fanout),
) -> MarketplaceEventResponse:
    """Notify the seller that their asset was bought."""
    logger.info("Received sale event for asset %s", body.asset_id)
    notification = notification_fanout.buy(body.seller, body.buyer, body.asset_id)
    return _accepted(notification)


@router.post("/listing", response_model=MarketplaceEventResponse)
async def listing_event(
    request: Request,
    body: ListingEvent,
    _: None = Depends(verify_marketplace_secret),
    notification_fanout=Depends(get_notification_fanout),
) -> MarketplaceEventResponse:
    """Confirm a new listing to the seller."""
    logger.info("Received listing event for asset %s", body.asset_id)
    if body.price:
        notification = notification_fanout.nft_listed(body.seller, body.asset_id, body.price)
    else:
        notification = notification_fanout.sell(body.seller, body.asset_id)
    return _accepted(notification)


@router.post("/post-created", response_model=MarketplaceEventResponse)
async def post_created_event(
    request: Request,
    body: PostCreatedEvent,
    _: None = Depends(verify_marketplace_secret),
    notification_fanout=Depends(get_notification_fanout),
) -> MarketplaceEventResponse:
    """Tell the owner their post was minted."""
    logger.info("Received post-created event for post %s", body.post_id)
    notification = notification_fanout.post_created(body.owner, body.post_id)
    return _accepted(notification)


@router.post("/cancellation", response_model=MarketplaceEventResponse)
async def cancellation_event(
    request: Request,
    body: CancellationEvent,
    _: None = Depends(verify_marketplace_secret),
) -> MarketplaceEventResponse:
    """Acknowledge a withdrawn listing."""
    logger.info("Received cancellation event for asset %s", body.asset_id)
    return MarketplaceEventResponse(detail="Cancellations do not create notifications")
