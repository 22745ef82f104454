"""
Global exception handlers for FastAPI.

Maps domain exceptions to HTTP responses, eliminating try/except
boilerplate from routers. Register with register_exception_handlers(app).
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


def error_response(status_code: int, detail: str, code: Optional[str] = None) -> JSONResponse:
    """Build a standardized error JSON response."""
    content: dict = {"detail": detail}
    if code:
        content["code"] = code
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all domain exception handlers on the FastAPI app."""
    # Store exceptions
    from mintchat.core.event_store import PersistenceFailure

    # Identity exceptions
    from mintchat.core.identity import InvalidIdentityError

    # Conversation exceptions
    from mintchat.models.conversation import (
        ConversationNotFoundError,
        NotConversationParticipantError,
    )

    # Message exceptions
    from mintchat.models.message import (
        EmptyMessageError,
        InvalidMessageKindError,
        MessageTooLongError,
    )

    # Notification exceptions
    from mintchat.models.notification import (
        InvalidNotificationError,
        NotificationNotFoundError,
    )

    # Reaction exceptions
    from mintchat.models.reaction import InvalidReactionTargetError

    # --- Identity handlers ---

    @app.exception_handler(InvalidIdentityError)
    async def _invalid_identity(request: Request, exc: InvalidIdentityError) -> JSONResponse:
        return error_response(400, str(exc), "INVALID_IDENTITY")

    # --- Conversation handlers ---

    @app.exception_handler(ConversationNotFoundError)
    async def _conversation_not_found(
        request: Request, exc: ConversationNotFoundError
    ) -> JSONResponse:
        return error_response(404, "Conversation not found.", "CONVERSATION_NOT_FOUND")

    @app.exception_handler(NotConversationParticipantError)
    async def _not_participant(
        request: Request, exc: NotConversationParticipantError
    ) -> JSONResponse:
        return error_response(
            403, "You are not a participant in this conversation.", "NOT_PARTICIPANT"
        )

    # --- Message handlers ---

    @app.exception_handler(EmptyMessageError)
    async def _empty_message(request: Request, exc: EmptyMessageError) -> JSONResponse:
        return error_response(422, "Message content cannot be empty.", "EMPTY_MESSAGE")

    @app.exception_handler(MessageTooLongError)
    async def _message_too_long(request: Request, exc: MessageTooLongError) -> JSONResponse:
        return error_response(422, str(exc), "MESSAGE_TOO_LONG")

    @app.exception_handler(InvalidMessageKindError)
    async def _invalid_message_kind(
        request: Request, exc: InvalidMessageKindError
    ) -> JSONResponse:
        return error_response(422, str(exc), "INVALID_MESSAGE_KIND")

    # --- Notification handlers ---

    @app.exception_handler(NotificationNotFoundError)
    async def _notification_not_found(
        request: Request, exc: NotificationNotFoundError
    ) -> JSONResponse:
        return error_response(404, "Notification not found.", "NOTIFICATION_NOT_FOUND")

    @app.exception_handler(InvalidNotificationError)
    async def _invalid_notification(
        request: Request, exc: InvalidNotificationError
    ) -> JSONResponse:
        return error_response(422, str(exc), "INVALID_NOTIFICATION")

    # --- Reaction handlers ---

    @app.exception_handler(InvalidReactionTargetError)
    async def _invalid_reaction_target(
        request: Request, exc: InvalidReactionTargetError
    ) -> JSONResponse:
        return error_response(400, str(exc), "INVALID_REACTION_TARGET")

    # --- Infrastructure handlers ---

    @app.exception_handler(PersistenceFailure)
    async def _persistence_failure(request: Request, exc: PersistenceFailure) -> JSONResponse:
        logger.error("Persistence failure on %s %s: %s", request.method, request.url.path, exc)
        return error_response(503, "Storage is temporarily unavailable.", "PERSISTENCE_FAILURE")

    # --- Catch-all ---

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return error_response(500, "Internal server error.", "INTERNAL_ERROR")
