"""
Reaction (like) ledger.

A like is the existence of one reactions row per (actor, target_type,
target_id); the table's unique constraint backs this up. toggle() flips that
existence and reports the new total. Toggling twice returns the target to
its original state and count.
"""

import logging
from typing import Optional

from mintchat.core.event_store import DuplicateRecordError, EventStore, PersistenceFailure
from mintchat.core.identity import normalize_identity
from mintchat.models.reaction import (
    InvalidReactionTargetError,
    Reaction,
    ReactionTargetType,
    ToggleResult,
    reaction_from_row,
)
from mintchat.services.notification_fanout import NotificationFanout

logger = logging.getLogger(__name__)


class ReactionLedger:
    """Service for toggling and querying likes."""

    def __init__(
        self,
        store: Optional[EventStore] = None,
        fanout: Optional[NotificationFanout] = None,
    ) -> None:
        self._store = store
        self._fanout = fanout

    @property
    def store(self) -> EventStore:
        if self._store is None:
            self._store = EventStore()
        return self._store

    @property
    def fanout(self) -> NotificationFanout:
        if self._fanout is None:
            self._fanout = NotificationFanout(self.store)
        return self._fanout

    # =========================================================================
    # Public API
    # =========================================================================

    def toggle(
        self,
        actor: str,
        target_type: str,
        target_id: str,
        target_owner: Optional[str] = None,
    ) -> ToggleResult:
        """
        Like the target if the actor has not, unlike it if they have.

        When the call results in a like and the target has an owner other than
        the actor, the owner gets a like notification (best-effort).

        Raises:
            InvalidReactionTargetError: Unknown target type or empty target id
            InvalidIdentityError: Actor is malformed
            PersistenceFailure: Store unreachable; nothing was changed
        """
        actor = normalize_identity(actor)
        target_type = self._target_type(target_type, target_id)
        key = {"actor": actor, "target_type": target_type, "target_id": target_id}

        existing = self.store.find_one("reactions", eq=key)
        inserted = None
        if existing:
            self.store.delete("reactions", eq={"id": existing["id"]})
            liked = False
        else:
            try:
                inserted = self.store.insert("reactions", key)
            except DuplicateRecordError:
                # A concurrent toggle from the same actor inserted first
                logger.info("Reaction already present for %s on %s/%s", actor, target_type, target_id)
            liked = True

        try:
            total = self.count(target_type, target_id)
        except PersistenceFailure:
            self._undo(inserted=inserted, removed=existing)
            raise

        if liked and target_owner:
            owner = normalize_identity(target_owner)
            if owner != actor:
                self.fanout.like(owner, actor, target_type, target_id)

        logger.debug(
            "Toggled %s/%s for %s: liked=%s count=%d",
            target_type,
            target_id,
            actor,
            liked,
            total,
        )
        return ToggleResult(liked=liked, count=total)

    def has_liked(self, actor: str, target_type: str, target_id: str) -> bool:
        target_type = self._target_type(target_type, target_id)
        row = self.store.find_one(
            "reactions",
            eq={
                "actor": normalize_identity(actor),
                "target_type": target_type,
                "target_id": target_id,
            },
            columns="id",
        )
        return row is not None

    def count(self, target_type: str, target_id: str) -> int:
        target_type = self._target_type(target_type, target_id)
        return self.store.count(
            "reactions", eq={"target_type": target_type, "target_id": target_id}
        )

    def likes_by(self, actor: str) -> list[Reaction]:
        """Everything a wallet has liked, newest first."""
        rows = self.store.find(
            "reactions",
            eq={"actor": normalize_identity(actor)},
            order_by="created_at",
            desc=True,
        )
        return [reaction_from_row(row) for row in rows]

    # =========================================================================
    # Private Helpers
    # =========================================================================

    @staticmethod
    def _target_type(target_type: str, target_id: str) -> str:
        try:
            value = ReactionTargetType(target_type).value
        except ValueError:
            raise InvalidReactionTargetError(f"Unknown reaction target type: {target_type}")
        if not target_id:
            raise InvalidReactionTargetError("Reaction target id is required")
        return value

    def _undo(self, inserted: Optional[dict], removed: Optional[dict]) -> None:
        """Reverse the write of a toggle that could not complete."""
        try:
            if inserted is not None:
                self.store.delete("reactions", eq={"id": inserted["id"]})
            elif removed is not None:
                self.store.insert("reactions", removed)
        except PersistenceFailure:
            logger.error(
                "Could not undo reaction toggle (inserted=%s, removed=%s)",
                inserted,
                removed,
                exc_info=True,
            )
