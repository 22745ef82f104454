"""
Marketplace event payloads.

The marketplace pushes these after on-chain activity; Mintchat never reads
marketplace state itself, it only turns the events into notifications.
"""

from typing import Optional

from pydantic import BaseModel, Field


class SaleEvent(BaseModel):
    """An asset changed hands."""

    seller: str = Field(..., min_length=1)
    buyer: str = Field(..., min_length=1)
    asset_id: str = Field(..., min_length=1)


class ListingEvent(BaseModel):
    """An asset was put up for sale. Without a price the seller gets a plain listing confirmation."""

    seller: str = Field(..., min_length=1)
    asset_id: str = Field(..., min_length=1)
    price: Optional[str] = None


class CancellationEvent(BaseModel):
    """A listing was withdrawn."""

    seller: str = Field(..., min_length=1)
    asset_id: str = Field(..., min_length=1)


class PostCreatedEvent(BaseModel):
    """A post was minted."""

    owner: str = Field(..., min_length=1)
    post_id: str = Field(..., min_length=1)


class MarketplaceEventResponse(BaseModel):
    accepted: bool = True
    notification_ids: list[str] = Field(default_factory=list)
    detail: Optional[str] = None
