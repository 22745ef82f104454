"""
Reaction (like) API endpoints.

Handles:
- POST / - Toggle a like on a message, post or asset
- GET /mine - Everything the caller has liked
- GET /{target_type}/{target_id} - Like count and whether the caller likes it
"""

import logging

from fastapi import APIRouter, Depends, Request

from mintchat.core.identity import WalletUser, require_wallet_from_state
from mintchat.core.rate_limit import POLL_LIMIT, REACTION_LIMIT, READ_LIMIT, limiter
from mintchat.models.reaction import (
    ReactionListResponse,
    ReactionStatusResponse,
    ReactionTargetType,
    ToggleReactionRequest,
    ToggleReactionResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_reaction_ledger():
    """Dependency to get ReactionLedger instance."""
    from mintchat.services.reaction_ledger import ReactionLedger

    return ReactionLedger()


@router.post("/", response_model=ToggleReactionResponse)
@limiter.limit(REACTION_LIMIT)
async def toggle_reaction(
    request: Request,
    body: ToggleReactionRequest,
    wallet: WalletUser = Depends(require_wallet_from_state),
    reaction_ledger=Depends(get_reaction_ledger),
) -> ToggleReactionResponse:
    """Like the target, or remove the caller's like if it already exists."""
    result = reaction_ledger.toggle(
        wallet.address, body.target_type.value, body.target_id, body.target_owner
    )
    return ToggleReactionResponse(
        target_type=body.target_type,
        target_id=body.target_id,
        liked=result.liked,
        count=result.count,
    )


@router.get("/mine", response_model=ReactionListResponse)
@limiter.limit(READ_LIMIT)
async def list_my_reactions(
    request: Request,
    wallet: WalletUser = Depends(require_wallet_from_state),
    reaction_ledger=Depends(get_reaction_ledger),
) -> ReactionListResponse:
    """Everything the caller has liked, newest first."""
    return ReactionListResponse(reactions=reaction_ledger.likes_by(wallet.address))


@router.get("/{target_type}/{target_id}", response_model=ReactionStatusResponse)
@limiter.limit(POLL_LIMIT)
async def get_reaction_status(
    request: Request,
    target_type: ReactionTargetType,
    target_id: str,
    wallet: WalletUser = Depends(require_wallet_from_state),
    reaction_ledger=Depends(get_reaction_ledger),
) -> ReactionStatusResponse:
    """Like count for a target and whether the caller has liked it."""
    return ReactionStatusResponse(
        target_type=target_type,
        target_id=target_id,
        liked=reaction_ledger.has_liked(wallet.address, target_type.value, target_id),
        count=reaction_ledger.count(target_type.value, target_id),
    )
