"""One-off composition route.

POST /compose rewrites content without a session. Prompt layers can be given
inline or looked up (preset_id, stored system prompt).
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from luma.api.deps import get_db, get_provider_registry
from luma.responses import success_response
from luma.schemas.transcriptions import ComposeOut, ComposeRequest
from luma.services.composer import CompositionRequest, compose
from luma.services.llm import ProviderRegistry

router = APIRouter(tags=["compose"])


@router.post("/compose")
async def compose_text(
    body: ComposeRequest,
    db: Annotated[Session, Depends(get_db)],
    registry: Annotated[ProviderRegistry, Depends(get_provider_registry)],
) -> dict:
    text = await compose(db, registry, CompositionRequest(**body.model_dump()))
    return success_response(ComposeOut(text=text).model_dump(mode="json"))
