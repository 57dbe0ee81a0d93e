"""Database module for Luma.

Provides engine creation, session management and ORM models.
"""

from luma.db.engine import create_db_engine, get_engine
from luma.db.models import (
    APIKey,
    Base,
    Message,
    MessageType,
    PromptPreset,
    Session,
    SystemPrompt,
    TranscriptionLog,
    TranscriptionMode,
    User,
)
from luma.db.session import create_schema, get_db, session_scope

__all__ = [
    # Engine and session
    "create_db_engine",
    "get_engine",
    "get_db",
    "create_schema",
    "session_scope",
    # Base
    "Base",
    # Enums
    "MessageType",
    "TranscriptionMode",
    # Models
    "User",
    "SystemPrompt",
    "PromptPreset",
    "Session",
    "Message",
    "APIKey",
    "TranscriptionLog",
]
