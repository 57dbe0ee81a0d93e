"""FastAPI dependencies for route handlers.

Database sessions plus the process-wide collaborators created in the app
lifespan (provider registry, transcription gateway, background supervisor).
"""

from fastapi import Request

from luma.db.session import get_db, get_session_factory
from luma.services.background import BackgroundTaskSupervisor
from luma.services.llm import ProviderRegistry
from luma.services.transcription import TranscriptionGateway

__all__ = [
    "get_db",
    "get_session_factory",
    "get_provider_registry",
    "get_transcription_gateway",
    "get_supervisor",
]


def get_provider_registry(request: Request) -> ProviderRegistry:
    """The shared provider registry from app state."""
    return request.app.state.provider_registry


def get_transcription_gateway(request: Request) -> TranscriptionGateway:
    """The shared transcription gateway from app state."""
    return request.app.state.transcription_gateway


def get_supervisor(request: Request) -> BackgroundTaskSupervisor:
    """The background task supervisor from app state."""
    return request.app.state.task_supervisor
