"""Session and message routes.

- POST /sessions: start a session
- GET /sessions?user_id=&limit=: a user's sessions
- GET /sessions/{session_id}: session, preset, system prompt and messages
- PATCH /sessions/{session_id}: change temporary prompt / context
- DELETE /sessions/{session_id}
- POST /sessions/{session_id}/messages: add a content message
- POST /sessions/{session_id}/messages/{message_id}/rewrite: rewrite it

Rewrite errors:
    E_MESSAGE_NOT_FOUND / E_MESSAGE_TYPE_MISMATCH (404)
    E_PROVIDER_NOT_SUPPORTED (400)
    E_MISSING_API_KEY (400)
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from luma.api.deps import get_db, get_provider_registry
from luma.responses import success_response
from luma.schemas.sessions import MessageCreate, SessionContextUpdate, SessionCreate
from luma.services import sessions as sessions_service
from luma.services.llm import ProviderRegistry

router = APIRouter(tags=["sessions"])


@router.post("/sessions", status_code=201)
def create_session(body: SessionCreate, db: Annotated[Session, Depends(get_db)]) -> dict:
    session = sessions_service.create_session(
        db,
        user_id=body.user_id,
        preset_id=body.preset_id,
        provider_name=body.provider_name,
        model=body.model,
        temporary_prompt=body.temporary_prompt,
        context_text=body.context_text,
        clipboard_enabled=body.clipboard_enabled,
    )
    return success_response(session.model_dump(mode="json"))


@router.get("/sessions")
def list_sessions(
    user_id: UUID,
    db: Annotated[Session, Depends(get_db)],
    limit: Annotated[int, Query()] = sessions_service.DEFAULT_LIMIT,
) -> dict:
    sessions = sessions_service.list_sessions(db, user_id, limit)
    return success_response([s.model_dump(mode="json") for s in sessions])


@router.get("/sessions/{session_id}")
def get_session(session_id: UUID, db: Annotated[Session, Depends(get_db)]) -> dict:
    detail = sessions_service.get_session_detail(db, session_id)
    return success_response(detail.model_dump(mode="json"))


@router.patch("/sessions/{session_id}")
def update_session(
    session_id: UUID, body: SessionContextUpdate, db: Annotated[Session, Depends(get_db)]
) -> dict:
    """Only fields present in the body change; null clears a field."""
    session = sessions_service.update_session_context(
        db, session_id, **body.model_dump(exclude_unset=True)
    )
    return success_response(session.model_dump(mode="json"))


@router.delete("/sessions/{session_id}", status_code=204)
def delete_session(session_id: UUID, db: Annotated[Session, Depends(get_db)]) -> Response:
    sessions_service.delete_session(db, session_id)
    return Response(status_code=204)


@router.post("/sessions/{session_id}/messages", status_code=201)
def add_message(
    session_id: UUID, body: MessageCreate, db: Annotated[Session, Depends(get_db)]
) -> dict:
    message = sessions_service.add_content_message(db, session_id, body.raw_text)
    return success_response(message.model_dump(mode="json"))


@router.post("/sessions/{session_id}/messages/{message_id}/rewrite", status_code=201)
async def rewrite_message(
    session_id: UUID,
    message_id: UUID,
    db: Annotated[Session, Depends(get_db)],
    registry: Annotated[ProviderRegistry, Depends(get_provider_registry)],
) -> dict:
    message = await sessions_service.rewrite_message(db, registry, session_id, message_id)
    return success_response(message.model_dump(mode="json"))
