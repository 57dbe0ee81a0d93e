"""Pydantic schemas for request/response models.

All schemas are re-exported here for convenient imports.
"""

from luma.schemas.keys import ApiKeyOut, ApiKeyUpsert
from luma.schemas.prompts import (
    PresetCreate,
    PresetOut,
    PresetUpdate,
    SystemPromptOut,
    SystemPromptUpdate,
)
from luma.schemas.sessions import (
    MessageCreate,
    MessageOut,
    SessionContextUpdate,
    SessionCreate,
    SessionDetailOut,
    SessionOut,
)
from luma.schemas.transcriptions import (
    ComposeOut,
    ComposeRequest,
    TranscriptionCreatedOut,
    TranscriptionOut,
)
from luma.schemas.users import UserCreate, UserOut

__all__ = [
    # Users
    "UserCreate",
    "UserOut",
    # Keys
    "ApiKeyUpsert",
    "ApiKeyOut",
    # Prompts
    "SystemPromptOut",
    "SystemPromptUpdate",
    "PresetOut",
    "PresetCreate",
    "PresetUpdate",
    # Sessions
    "SessionCreate",
    "SessionContextUpdate",
    "SessionOut",
    "SessionDetailOut",
    "MessageCreate",
    "MessageOut",
    # Transcriptions / compose
    "TranscriptionOut",
    "TranscriptionCreatedOut",
    "ComposeRequest",
    "ComposeOut",
]
