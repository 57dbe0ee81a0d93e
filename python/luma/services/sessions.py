"""Session and message orchestration.

A session pins a preset, provider, model and the system prompt that was active
when it started. Its lifecycle is:

    created → (content message added)* → (rewrite triggered)*

Sessions never terminate on their own; they are only deleted explicitly.

Invariants:
- Content messages are immutable once stored.
- A rewrite is derived from exactly one content message of the same session.
  Asking to rewrite anything else fails with a not-found class error
  (E_MESSAGE_TYPE_MISMATCH) and writes nothing.
- The provider call happens before any write. If composition fails, no
  message is stored and the error propagates unchanged.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from luma.db.models import Message, MessageType
from luma.db.models import Session as RewriteSession
from luma.errors import ApiErrorCode, InvalidRequestError, NotFoundError
from luma.logging import get_logger
from luma.schemas.prompts import PresetOut, SystemPromptOut
from luma.schemas.sessions import MessageOut, SessionDetailOut, SessionOut
from luma.services.composer import CompositionRequest, compose
from luma.services.crypto import SecretCipher
from luma.services.llm import ProviderRegistry
from luma.services.prompts import get_preset, get_system_prompt

logger = get_logger(__name__)

# =============================================================================
# Constants
# =============================================================================

DEFAULT_LIMIT = 50
MIN_LIMIT = 1
MAX_LIMIT = 100


class _Unset:
    """Marker for keyword arguments the caller did not pass."""


_UNSET = _Unset()


# =============================================================================
# Helper Functions
# =============================================================================


def clamp_limit(limit: int) -> int:
    """Clamp limit to valid range [MIN_LIMIT, MAX_LIMIT]."""
    return min(max(limit, MIN_LIMIT), MAX_LIMIT)


def get_session_or_404(db: Session, session_id: UUID) -> RewriteSession:
    """Load a session.

    Raises:
        NotFoundError(E_SESSION_NOT_FOUND): If the session doesn't exist.
    """
    session = db.get(RewriteSession, session_id)
    if session is None:
        raise NotFoundError(ApiErrorCode.E_SESSION_NOT_FOUND, "Session not found")
    return session


def _get_content_message(db: Session, session_id: UUID, message_id: UUID) -> Message:
    message = db.get(Message, message_id)
    if message is None or message.session_id != session_id:
        raise NotFoundError(ApiErrorCode.E_MESSAGE_NOT_FOUND, "Message not found")
    if message.type != MessageType.content:
        raise NotFoundError(
            ApiErrorCode.E_MESSAGE_TYPE_MISMATCH, "Only content messages can be rewritten"
        )
    return message


# =============================================================================
# Sessions
# =============================================================================


def create_session(
    db: Session,
    user_id: UUID,
    preset_id: UUID,
    provider_name: str,
    model: str = "",
    temporary_prompt: str | None = None,
    context_text: str | None = None,
    clipboard_enabled: bool = False,
) -> SessionOut:
    """Start a session.

    Raises:
        NotFoundError(E_PRESET_NOT_FOUND): If the preset doesn't exist or
            belongs to another user.
    """
    provider_name = provider_name.strip().lower()
    if not provider_name:
        raise InvalidRequestError(message="provider_name is required")

    preset = get_preset(db, preset_id, user_id)
    system_prompt = get_system_prompt(db)

    session = RewriteSession(
        user_id=user_id,
        preset_id=preset.id,
        provider_name=provider_name,
        model=model.strip(),
        temporary_prompt=temporary_prompt,
        context_text=context_text,
        system_prompt_id=system_prompt.id,
        clipboard_enabled=clipboard_enabled,
    )
    db.add(session)
    db.flush()
    db.commit()

    logger.info(
        "session_created",
        session_id=str(session.id),
        preset_id=str(preset.id),
        provider=provider_name,
    )
    return SessionOut.model_validate(session)


def list_sessions(db: Session, user_id: UUID, limit: int = DEFAULT_LIMIT) -> list[SessionOut]:
    """List a user's sessions, most recently updated first."""
    stmt = (
        select(RewriteSession)
        .where(RewriteSession.user_id == user_id)
        .order_by(RewriteSession.updated_at.desc(), RewriteSession.created_at.desc())
        .limit(clamp_limit(limit))
    )
    return [SessionOut.model_validate(s) for s in db.scalars(stmt).all()]


def get_session_detail(db: Session, session_id: UUID) -> SessionDetailOut:
    """Return a session with its preset, the active system prompt and its messages.

    Messages are ordered by creation time, oldest first.
    """
    session = get_session_or_404(db, session_id)
    preset = get_preset(db, session.preset_id)
    system_prompt = get_system_prompt(db)

    stmt = (
        select(Message)
        .where(Message.session_id == session.id)
        .order_by(Message.created_at.asc())
    )
    messages = db.scalars(stmt).all()

    return SessionDetailOut(
        session=SessionOut.model_validate(session),
        preset=PresetOut.model_validate(preset),
        system_prompt=SystemPromptOut.model_validate(system_prompt),
        messages=[MessageOut.model_validate(m) for m in messages],
    )


def update_session_context(
    db: Session,
    session_id: UUID,
    *,
    temporary_prompt: str | None | _Unset = _UNSET,
    context_text: str | None | _Unset = _UNSET,
) -> SessionOut:
    """Change the only mutable parts of a session.

    Arguments left unset keep their current value; None clears the field.
    """
    session = get_session_or_404(db, session_id)
    if temporary_prompt is not _UNSET:
        session.temporary_prompt = temporary_prompt
    if context_text is not _UNSET:
        session.context_text = context_text
    db.flush()
    db.commit()

    logger.info("session_context_updated", session_id=str(session.id))
    return SessionOut.model_validate(session)


def delete_session(db: Session, session_id: UUID) -> None:
    """Delete a session and its messages."""
    session = get_session_or_404(db, session_id)
    db.delete(session)
    db.commit()
    logger.info("session_deleted", session_id=str(session_id))


# =============================================================================
# Messages
# =============================================================================


def add_content_message(db: Session, session_id: UUID, raw_text: str) -> MessageOut:
    """Append a content message to a session.

    Raises:
        NotFoundError(E_SESSION_NOT_FOUND): If the session doesn't exist.
        InvalidRequestError: If the text is blank.
    """
    session = get_session_or_404(db, session_id)
    if not raw_text.strip():
        raise InvalidRequestError(message="raw_text is required")

    message = Message(session_id=session.id, type=MessageType.content, raw_text=raw_text)
    db.add(message)
    db.flush()
    db.commit()

    logger.info(
        "content_message_added",
        session_id=str(session.id),
        message_id=str(message.id),
        text_chars=len(raw_text),
    )
    return MessageOut.model_validate(message)


def _store_rewrite(db: Session, session_id: UUID, source: Message, transformed: str) -> Message:
    message = Message(
        session_id=session_id,
        type=MessageType.rewrite,
        raw_text=source.raw_text,
        transformed_text=transformed,
        source_message_id=source.id,
    )
    db.add(message)
    db.flush()
    db.commit()
    return message


async def rewrite_message(
    db: Session,
    registry: ProviderRegistry,
    session_id: UUID,
    message_id: UUID,
    *,
    cipher: SecretCipher | None = None,
) -> MessageOut:
    """Rewrite a content message with the session's settings and store the result.

    Raises:
        NotFoundError: If the session or message doesn't exist, the message
            belongs to another session, or it is not a content message
            (E_MESSAGE_TYPE_MISMATCH).
        ProviderNotSupportedError: If the session's provider isn't registered.
        MissingApiKeyError: If the user has no usable key for the provider.
        LLMError: If the provider call fails.
    """
    session = await run_in_threadpool(get_session_or_404, db, session_id)
    source = await run_in_threadpool(_get_content_message, db, session.id, message_id)
    preset = await run_in_threadpool(get_preset, db, session.preset_id)
    system_prompt = await run_in_threadpool(get_system_prompt, db)

    transformed = await compose(
        db,
        registry,
        CompositionRequest(
            user_id=session.user_id,
            content=source.raw_text,
            provider_name=session.provider_name,
            model=session.model,
            system_prompt=system_prompt.prompt_text,
            preset_text=preset.prompt_text,
            temporary_prompt=session.temporary_prompt,
            context_text=session.context_text,
        ),
        cipher=cipher,
    )

    message = await run_in_threadpool(_store_rewrite, db, session.id, source, transformed)

    logger.info(
        "rewrite_message_added",
        session_id=str(session.id),
        message_id=str(message.id),
        source_message_id=str(source.id),
        output_chars=len(transformed),
    )
    return MessageOut.model_validate(message)
