"""Session and message Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from luma.db.models import MessageType
from luma.schemas.prompts import PresetOut, SystemPromptOut


class SessionCreate(BaseModel):
    """Request body for starting a session."""

    user_id: UUID
    preset_id: UUID
    provider_name: str = Field(..., min_length=1, max_length=50)
    model: str = Field(default="", max_length=100)
    temporary_prompt: str | None = None
    context_text: str | None = None
    clipboard_enabled: bool = False


class SessionContextUpdate(BaseModel):
    """Request body for changing a session's temporary prompt or context."""

    temporary_prompt: str | None = None
    context_text: str | None = None


class MessageCreate(BaseModel):
    """Request body for adding a content message."""

    raw_text: str = Field(..., min_length=1)


class SessionOut(BaseModel):
    """Response schema for a session."""

    id: UUID
    user_id: UUID
    preset_id: UUID
    provider_name: str
    model: str
    temporary_prompt: str | None = None
    context_text: str | None = None
    system_prompt_id: UUID | None = None
    clipboard_enabled: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MessageOut(BaseModel):
    """Response schema for a message.

    Content messages carry only raw_text. Rewrite messages carry the raw text
    they were derived from and the transformed text.
    """

    id: UUID
    session_id: UUID
    type: MessageType
    raw_text: str
    transformed_text: str | None = None
    source_message_id: UUID | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SessionDetailOut(BaseModel):
    """A session with its preset, the active system prompt and its messages."""

    session: SessionOut
    preset: PresetOut
    system_prompt: SystemPromptOut
    messages: list[MessageOut]
