"""API key routes.

- GET /api-keys?user_id=: stored keys (provider, fingerprint, timestamps)
- PUT /api-keys/{provider}: store or replace the key for a provider
- DELETE /api-keys/{provider}?user_id=: remove it

Security invariants:
- Responses never include ciphertext or plaintext
- Keys are encrypted before storage
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from luma.api.deps import get_db
from luma.responses import success_response
from luma.schemas.keys import ApiKeyUpsert
from luma.services import api_keys as api_keys_service

router = APIRouter(tags=["api-keys"])


@router.get("/api-keys")
def list_keys(user_id: UUID, db: Annotated[Session, Depends(get_db)]) -> dict:
    keys = api_keys_service.list_api_keys(db, user_id)
    return success_response([k.model_dump(mode="json") for k in keys])


@router.put("/api-keys/{provider}", status_code=201)
def upsert_key(
    provider: str,
    body: ApiKeyUpsert,
    db: Annotated[Session, Depends(get_db)],
    response: Response,
) -> dict:
    """Store a key.

    Returns:
        201 Created (new key) or 200 OK (replaced key)
    """
    key_out, is_created = api_keys_service.upsert_api_key(
        db, user_id=body.user_id, provider=provider, plaintext=body.api_key
    )
    if not is_created:
        response.status_code = 200
    return success_response(key_out.model_dump(mode="json"))


@router.delete("/api-keys/{provider}", status_code=204)
def delete_key(
    provider: str, user_id: UUID, db: Annotated[Session, Depends(get_db)]
) -> Response:
    """Errors: E_API_KEY_NOT_FOUND (404)"""
    api_keys_service.delete_api_key(db, user_id=user_id, provider=provider)
    return Response(status_code=204)
