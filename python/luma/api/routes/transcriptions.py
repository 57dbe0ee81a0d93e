"""Transcription routes.

- POST /transcriptions (multipart): transcribe audio; content-mode uploads
  are rewritten in the background and the response says processing=true
- GET /transcriptions?user_id=&limit=: history, newest first
- GET /transcriptions/{log_id}?user_id=: one entry (poll for generated_text)
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session, sessionmaker

from luma.api.deps import (
    get_db,
    get_provider_registry,
    get_session_factory,
    get_supervisor,
    get_transcription_gateway,
)
from luma.errors import InvalidRequestError
from luma.logging import set_user_context
from luma.responses import success_response
from luma.services import transcription as transcription_service
from luma.services.background import BackgroundTaskSupervisor
from luma.services.llm import ProviderRegistry
from luma.services.transcription import RewriteOptions, TranscriptionGateway

router = APIRouter(tags=["transcriptions"])


def _optional_uuid(value: str | None) -> UUID | None:
    value = (value or "").strip()
    if not value:
        return None
    try:
        return UUID(value)
    except ValueError:
        raise InvalidRequestError(message="preset_id is not a valid id") from None


@router.post("/transcriptions", status_code=201)
async def create_transcription(
    audio: Annotated[UploadFile, File()],
    user_id: Annotated[UUID, Form()],
    db: Annotated[Session, Depends(get_db)],
    session_factory: Annotated[sessionmaker, Depends(get_session_factory)],
    gateway: Annotated[TranscriptionGateway, Depends(get_transcription_gateway)],
    registry: Annotated[ProviderRegistry, Depends(get_provider_registry)],
    supervisor: Annotated[BackgroundTaskSupervisor, Depends(get_supervisor)],
    provider: Annotated[str, Form()] = "openai",
    mode: Annotated[str, Form()] = "content",
    duration_seconds: Annotated[float, Form()] = 0.0,
    model: Annotated[str, Form()] = "",
    preset_id: Annotated[str | None, Form()] = None,
    preset_text: Annotated[str | None, Form()] = None,
    temporary_prompt: Annotated[str | None, Form()] = None,
    context_text: Annotated[str | None, Form()] = None,
) -> dict:
    """Transcribe an upload.

    Errors:
        E_MISSING_API_KEY (400): No key for the transcription provider
        E_INVALID_REQUEST (400): Empty upload
    """
    set_user_context(str(user_id))
    data = await audio.read()
    if not data:
        raise InvalidRequestError(message="audio file is empty")

    result = await transcription_service.transcribe_and_compose(
        db,
        session_factory,
        gateway,
        registry,
        supervisor,
        user_id,
        data,
        mode=mode,
        duration_seconds=duration_seconds,
        options=RewriteOptions(
            provider_name=provider,
            model=model,
            preset_id=_optional_uuid(preset_id),
            preset_text=preset_text,
            temporary_prompt=temporary_prompt,
            context_text=context_text,
        ),
    )
    return success_response(result.model_dump(mode="json"))


@router.get("/transcriptions")
def list_transcriptions(
    user_id: UUID,
    db: Annotated[Session, Depends(get_db)],
    limit: Annotated[int, Query()] = transcription_service.DEFAULT_HISTORY_LIMIT,
) -> dict:
    entries = transcription_service.list_history(db, user_id, limit)
    return success_response([e.model_dump(mode="json") for e in entries])


@router.get("/transcriptions/{log_id}")
def get_transcription(
    log_id: UUID, user_id: UUID, db: Annotated[Session, Depends(get_db)]
) -> dict:
    entry = transcription_service.get_transcription(db, user_id, log_id)
    return success_response(entry.model_dump(mode="json"))
