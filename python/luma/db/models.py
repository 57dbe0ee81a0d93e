"""SQLAlchemy ORM models for Luma.

Defines all database tables using SQLAlchemy 2.x declarative patterns.
Column types are the portable generic ones (Uuid, DateTime with timezone,
Text) and defaults are generated application-side, so the same metadata
runs on PostgreSQL in deployment and SQLite in tests.
"""

from datetime import UTC, datetime
from enum import Enum as PyEnum
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# =============================================================================
# Enums
# =============================================================================


class MessageType(str, PyEnum):
    """Kinds of session messages.

    content: raw user input, immutable once stored
    rewrite: provider output derived from a content message
    """

    content = "content"
    rewrite = "rewrite"


class TranscriptionMode(str, PyEnum):
    """What a transcript is used for.

    content: the transcript is text to be rewritten
    prompt: the transcript is itself an instruction; never rewritten
    """

    content = "content"
    prompt = "prompt"


# =============================================================================
# Users
# =============================================================================


class User(Base):
    """A person using Luma. Created by the user directory, referenced by everything else."""

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    api_keys: Mapped[list["APIKey"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    presets: Mapped[list["PromptPreset"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    sessions: Mapped[list["Session"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    transcriptions: Mapped[list["TranscriptionLog"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )


# =============================================================================
# Prompts
# =============================================================================


class SystemPrompt(Base):
    """Global rewrite instructions. At most one row is active."""

    __tablename__ = "system_prompts"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    prompt_text: Mapped[str] = mapped_column(Text, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class PromptPreset(Base):
    """A user's reusable rewrite instructions.

    template_key identifies presets seeded from a shared template; a user
    holds at most one preset per template_key.
    """

    __tablename__ = "prompt_presets"
    __table_args__ = (
        UniqueConstraint("user_id", "template_key", name="uq_prompt_presets_user_template"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    prompt_text: Mapped[str] = mapped_column(Text, nullable=False)
    template_key: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    user: Mapped["User"] = relationship(back_populates="presets")


# =============================================================================
# Sessions and messages
# =============================================================================


class Session(Base):
    """A rewriting session bound to one preset, provider and model.

    Only temporary_prompt, context_text and updated_at change after creation.
    """

    __tablename__ = "sessions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    preset_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("prompt_presets.id", ondelete="CASCADE"), nullable=False
    )
    provider_name: Mapped[str] = mapped_column(Text, nullable=False)
    model: Mapped[str] = mapped_column(Text, nullable=False)
    temporary_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    context_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    system_prompt_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("system_prompts.id", ondelete="SET NULL"), nullable=True
    )
    clipboard_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    user: Mapped["User"] = relationship(back_populates="sessions")
    preset: Mapped["PromptPreset"] = relationship()
    messages: Mapped[list["Message"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Message.created_at",
    )


class Message(Base):
    """One entry in a session. Rows are append-only."""

    __tablename__ = "messages"
    __table_args__ = (Index("ix_messages_session_created", "session_id", "created_at"),)

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    session_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[MessageType] = mapped_column(
        Enum(MessageType, name="message_type", native_enum=False), nullable=False
    )
    raw_text: Mapped[str] = mapped_column(Text, nullable=False)
    transformed_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_message_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("messages.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    session: Mapped["Session"] = relationship(back_populates="messages")


# =============================================================================
# Credentials
# =============================================================================


class APIKey(Base):
    """A user's credential for one provider. Only ciphertext is stored."""

    __tablename__ = "api_keys"
    __table_args__ = (
        UniqueConstraint("user_id", "provider_name", name="uq_api_keys_user_provider"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    provider_name: Mapped[str] = mapped_column(Text, nullable=False)
    encrypted_key: Mapped[str] = mapped_column(Text, nullable=False)
    key_fingerprint: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    user: Mapped["User"] = relationship(back_populates="api_keys")


# =============================================================================
# Transcriptions
# =============================================================================


class TranscriptionLog(Base):
    """A stored transcript, optionally with the text generated from it."""

    __tablename__ = "transcription_logs"
    __table_args__ = (Index("ix_transcription_logs_user_created", "user_id", "created_at"),)

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    mode: Mapped[TranscriptionMode] = mapped_column(
        Enum(TranscriptionMode, name="transcription_mode", native_enum=False), nullable=False
    )
    transcript: Mapped[str] = mapped_column(Text, nullable=False)
    generated_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_seconds: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    user: Mapped["User"] = relationship(back_populates="transcriptions")
