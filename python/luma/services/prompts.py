"""Prompt assembler: the global system prompt and per-user presets.

System prompt:
- At most one active row. Reads hand out an ActivePromptConfig value rather
  than the ORM row.
- ensure_default_system_prompt() is the explicit, idempotent startup step
  that installs DEFAULT_SYSTEM_PROMPT when nothing is active.
- get_system_prompt() falls back to that step once if it finds nothing, so a
  fresh database works even when startup was skipped (tests, scripts).
- update_system_prompt() replaces the active row's text in place.

Presets:
- Owned by a user; another user's preset is reported as not found.
- A preset created with a template_key the user already has overwrites the
  existing preset (same id) instead of adding a second one.

Layer resolution (resolve_prompt_layers):
- Explicit system text wins over the stored active prompt.
- Explicit preset text wins over a preset looked up by id.
- Temporary prompt and context pass through unchanged.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from luma.db.models import PromptPreset, SystemPrompt
from luma.db.models import Session as RewriteSession
from luma.errors import ApiErrorCode, InvalidRequestError, NotFoundError
from luma.logging import get_logger
from luma.schemas.prompts import PresetOut
from luma.services.llm.prompt import DEFAULT_SYSTEM_PROMPT

logger = get_logger(__name__)


# =============================================================================
# Value objects
# =============================================================================


@dataclass(frozen=True)
class ActivePromptConfig:
    """Snapshot of the active system prompt."""

    id: UUID
    prompt_text: str
    updated_at: datetime

    @classmethod
    def from_row(cls, row: SystemPrompt) -> "ActivePromptConfig":
        return cls(id=row.id, prompt_text=row.prompt_text, updated_at=row.updated_at)


@dataclass(frozen=True)
class PromptLayers:
    """Resolved instruction layers for one rewrite."""

    system_prompt: str
    preset_prompt: str
    temporary_prompt: str
    context_text: str


# =============================================================================
# System prompt
# =============================================================================


def _get_active_row(db: Session) -> SystemPrompt | None:
    stmt = (
        select(SystemPrompt)
        .where(SystemPrompt.active.is_(True))
        .order_by(SystemPrompt.updated_at.desc())
        .limit(1)
    )
    return db.scalars(stmt).first()


def ensure_default_system_prompt(db: Session) -> ActivePromptConfig:
    """Install the default system prompt unless one is already active."""
    row = _get_active_row(db)
    if row is not None:
        return ActivePromptConfig.from_row(row)

    row = SystemPrompt(prompt_text=DEFAULT_SYSTEM_PROMPT, active=True)
    db.add(row)
    db.flush()
    db.commit()

    logger.info("system_prompt_default_created", system_prompt_id=str(row.id))
    return ActivePromptConfig.from_row(row)


def get_system_prompt(db: Session) -> ActivePromptConfig:
    """Return the active system prompt, creating the default on first use."""
    row = _get_active_row(db)
    if row is None:
        return ensure_default_system_prompt(db)
    return ActivePromptConfig.from_row(row)


def update_system_prompt(db: Session, prompt_text: str) -> ActivePromptConfig:
    """Replace the active system prompt's text (inserting a row if none exists)."""
    if not prompt_text.strip():
        raise InvalidRequestError(message="System prompt must not be empty")

    row = _get_active_row(db)
    if row is None:
        row = SystemPrompt(prompt_text=prompt_text, active=True)
        db.add(row)
    else:
        row.prompt_text = prompt_text
    db.flush()
    db.commit()

    logger.info("system_prompt_updated", system_prompt_id=str(row.id), text_chars=len(prompt_text))
    return ActivePromptConfig.from_row(row)


# =============================================================================
# Presets
# =============================================================================


def _normalize_template_key(template_key: str | None) -> str | None:
    if template_key is None:
        return None
    template_key = template_key.strip()
    return template_key or None


def get_preset(db: Session, preset_id: UUID, user_id: UUID | None = None) -> PromptPreset:
    """Load a preset, optionally checking the owner.

    Raises:
        NotFoundError(E_PRESET_NOT_FOUND): If the preset doesn't exist or
            belongs to someone else.
    """
    preset = db.get(PromptPreset, preset_id)
    if preset is None or (user_id is not None and preset.user_id != user_id):
        raise NotFoundError(ApiErrorCode.E_PRESET_NOT_FOUND, "Preset not found")
    return preset


def list_presets(db: Session, user_id: UUID) -> list[PresetOut]:
    """List a user's presets, newest first."""
    stmt = (
        select(PromptPreset)
        .where(PromptPreset.user_id == user_id)
        .order_by(PromptPreset.created_at.desc())
    )
    return [PresetOut.model_validate(p) for p in db.scalars(stmt).all()]


def create_preset(
    db: Session,
    user_id: UUID,
    name: str,
    prompt_text: str,
    template_key: str | None = None,
) -> tuple[PresetOut, bool]:
    """Create a preset, or overwrite the user's preset with the same template key.

    Returns:
        Tuple of (PresetOut, is_created).
    """
    template_key = _normalize_template_key(template_key)

    if template_key is not None:
        stmt = select(PromptPreset).where(
            PromptPreset.user_id == user_id,
            PromptPreset.template_key == template_key,
        )
        existing = db.scalars(stmt).first()
        if existing is not None:
            existing.name = name
            existing.prompt_text = prompt_text
            db.flush()
            db.commit()
            logger.info(
                "preset_reseeded", preset_id=str(existing.id), template_key=template_key
            )
            return PresetOut.model_validate(existing), False

    preset = PromptPreset(
        user_id=user_id,
        name=name,
        prompt_text=prompt_text,
        template_key=template_key,
    )
    db.add(preset)
    db.flush()
    db.commit()

    logger.info("preset_created", preset_id=str(preset.id), template_key=template_key)
    return PresetOut.model_validate(preset), True


def update_preset(
    db: Session,
    preset_id: UUID,
    user_id: UUID,
    name: str,
    prompt_text: str,
    template_key: str | None = None,
) -> PresetOut:
    """Edit a preset the user owns.

    Raises:
        NotFoundError(E_PRESET_NOT_FOUND): If the preset isn't the user's.
        InvalidRequestError: If the template key is taken by another preset.
    """
    preset = get_preset(db, preset_id, user_id)
    preset.name = name
    preset.prompt_text = prompt_text
    preset.template_key = _normalize_template_key(template_key)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise InvalidRequestError(message="Template key already used by another preset") from None
    db.commit()

    logger.info("preset_updated", preset_id=str(preset.id))
    return PresetOut.model_validate(preset)


def delete_preset(db: Session, preset_id: UUID, user_id: UUID) -> None:
    """Delete a preset the user owns.

    Raises:
        NotFoundError(E_PRESET_NOT_FOUND): If the preset isn't the user's.
        InvalidRequestError: If a session still uses the preset.
    """
    preset = get_preset(db, preset_id, user_id)

    in_use = db.scalar(
        select(func.count()).select_from(RewriteSession).where(RewriteSession.preset_id == preset.id)
    )
    if in_use:
        raise InvalidRequestError(message="Preset is used by an existing session")

    db.delete(preset)
    db.commit()
    logger.info("preset_deleted", preset_id=str(preset_id))


# =============================================================================
# Layer resolution
# =============================================================================


def resolve_prompt_layers(
    db: Session,
    *,
    user_id: UUID | None = None,
    system_prompt: str | None = None,
    preset_id: UUID | None = None,
    preset_text: str | None = None,
    temporary_prompt: str | None = None,
    context_text: str | None = None,
) -> PromptLayers:
    """Resolve every instruction layer for a rewrite.

    Raises:
        NotFoundError(E_PRESET_NOT_FOUND): If preset_id is given without
            preset_text and the preset can't be loaded.
    """
    if not system_prompt:
        system_prompt = get_system_prompt(db).prompt_text

    if not preset_text:
        preset_text = ""
        if preset_id is not None:
            preset_text = get_preset(db, preset_id, user_id).prompt_text

    return PromptLayers(
        system_prompt=system_prompt,
        preset_prompt=preset_text,
        temporary_prompt=temporary_prompt or "",
        context_text=context_text or "",
    )
