"""
Reaction (like) models.

A like exists iff a reactions row exists for (actor, target_type, target_id);
there is no boolean flag to drift out of sync.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ReactionTargetType(str, Enum):
    MESSAGE = "message"
    POST = "post"
    ASSET = "asset"


class Reaction(BaseModel):
    """A stored like."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    actor: str
    target_type: ReactionTargetType
    target_id: str
    created_at: datetime


def reaction_from_row(row: dict) -> Reaction:
    """Map a `reactions` row to a Reaction."""
    return Reaction(
        id=str(row["id"]),
        actor=row["actor"],
        target_type=ReactionTargetType(row["target_type"]),
        target_id=str(row["target_id"]),
        created_at=row["created_at"],
    )


class ToggleResult(BaseModel):
    """Outcome of a toggle: whether the actor now likes the target, and the new total."""

    liked: bool
    count: int = Field(..., ge=0)


# ===========================================
# Request / Response Models
# ===========================================


class ToggleReactionRequest(BaseModel):
    target_type: ReactionTargetType
    target_id: str = Field(..., min_length=1)
    target_owner: Optional[str] = None


class ToggleReactionResponse(BaseModel):
    target_type: ReactionTargetType
    target_id: str
    liked: bool
    count: int


class ReactionStatusResponse(BaseModel):
    target_type: ReactionTargetType
    target_id: str
    liked: bool
    count: int


class ReactionListResponse(BaseModel):
    reactions: list[Reaction]


# ===========================================
# Exception Classes
# ===========================================


class ReactionServiceError(Exception):
    """Base exception for reaction errors."""

    pass


class InvalidReactionTargetError(ReactionServiceError):
    """Target type is not one of message, post, asset."""

    pass
