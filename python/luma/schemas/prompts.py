"""System prompt and preset Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class SystemPromptOut(BaseModel):
    """The active system prompt."""

    id: UUID
    prompt_text: str
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SystemPromptUpdate(BaseModel):
    """Request body for replacing the system prompt text."""

    prompt_text: str = Field(..., min_length=1)


class PresetOut(BaseModel):
    """Response schema for a prompt preset."""

    id: UUID
    user_id: UUID
    name: str
    prompt_text: str
    template_key: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PresetCreate(BaseModel):
    """Request body for creating (or re-seeding by template key) a preset."""

    user_id: UUID
    name: str = Field(..., min_length=1, max_length=200)
    prompt_text: str = Field(..., min_length=1)
    template_key: str | None = Field(default=None, max_length=100)


class PresetUpdate(BaseModel):
    """Request body for editing a preset."""

    user_id: UUID
    name: str = Field(..., min_length=1, max_length=200)
    prompt_text: str = Field(..., min_length=1)
    template_key: str | None = Field(default=None, max_length=100)
