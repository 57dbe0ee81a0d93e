"""System prompt and preset routes.

- GET /system-prompt: the active system prompt (created on first read)
- PUT /system-prompt: replace its text
- GET /presets?user_id=: a user's presets, newest first
- POST /presets: create, or overwrite the user's preset with the same template_key
- PUT /presets/{preset_id}: edit
- DELETE /presets/{preset_id}?user_id=: delete
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from luma.api.deps import get_db
from luma.responses import success_response
from luma.schemas.prompts import PresetCreate, PresetUpdate, SystemPromptOut, SystemPromptUpdate
from luma.services import prompts as prompts_service

router = APIRouter(tags=["prompts"])


@router.get("/system-prompt")
def get_system_prompt(db: Annotated[Session, Depends(get_db)]) -> dict:
    config = prompts_service.get_system_prompt(db)
    return success_response(SystemPromptOut.model_validate(config).model_dump(mode="json"))


@router.put("/system-prompt")
def update_system_prompt(
    body: SystemPromptUpdate, db: Annotated[Session, Depends(get_db)]
) -> dict:
    config = prompts_service.update_system_prompt(db, body.prompt_text)
    return success_response(SystemPromptOut.model_validate(config).model_dump(mode="json"))


@router.get("/presets")
def list_presets(user_id: UUID, db: Annotated[Session, Depends(get_db)]) -> dict:
    presets = prompts_service.list_presets(db, user_id)
    return success_response([p.model_dump(mode="json") for p in presets])


@router.post("/presets", status_code=201)
def create_preset(
    body: PresetCreate, db: Annotated[Session, Depends(get_db)], response: Response
) -> dict:
    """Create a preset.

    Returns:
        201 Created (new preset) or 200 OK (existing template_key overwritten)
    """
    preset, is_created = prompts_service.create_preset(
        db,
        user_id=body.user_id,
        name=body.name,
        prompt_text=body.prompt_text,
        template_key=body.template_key,
    )
    if not is_created:
        response.status_code = 200
    return success_response(preset.model_dump(mode="json"))


@router.put("/presets/{preset_id}")
def update_preset(
    preset_id: UUID, body: PresetUpdate, db: Annotated[Session, Depends(get_db)]
) -> dict:
    preset = prompts_service.update_preset(
        db,
        preset_id=preset_id,
        user_id=body.user_id,
        name=body.name,
        prompt_text=body.prompt_text,
        template_key=body.template_key,
    )
    return success_response(preset.model_dump(mode="json"))


@router.delete("/presets/{preset_id}", status_code=204)
def delete_preset(
    preset_id: UUID, user_id: UUID, db: Annotated[Session, Depends(get_db)]
) -> Response:
    prompts_service.delete_preset(db, preset_id=preset_id, user_id=user_id)
    return Response(status_code=204)
