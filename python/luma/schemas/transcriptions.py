"""Transcription and compose Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from luma.db.models import TranscriptionMode


class TranscriptionOut(BaseModel):
    """Response schema for a transcription log entry."""

    id: UUID
    user_id: UUID
    mode: TranscriptionMode
    transcript: str
    generated_text: str | None = None
    duration_seconds: float
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TranscriptionCreatedOut(BaseModel):
    """Response for a new transcription.

    processing is True when a rewrite was handed to the background and
    generated_text will appear on the log later.
    """

    log: TranscriptionOut
    processing: bool


class ComposeRequest(BaseModel):
    """Request body for a one-off composition."""

    user_id: UUID
    content: str
    provider_name: str = Field(default="openai", min_length=1, max_length=50)
    model: str = ""
    system_prompt: str | None = None
    preset_id: UUID | None = None
    preset_text: str | None = None
    temporary_prompt: str | None = None
    context_text: str | None = None


class ComposeOut(BaseModel):
    """Response for a one-off composition."""

    text: str
