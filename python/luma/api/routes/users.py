"""User routes.

Routes are transport-only: each calls exactly one service function.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from luma.api.deps import get_db
from luma.responses import success_response
from luma.schemas.users import UserCreate
from luma.services import users as users_service

router = APIRouter(tags=["users"])


@router.post("/users", status_code=201)
def create_user(body: UserCreate, db: Annotated[Session, Depends(get_db)]) -> dict:
    """Create a user.

    Errors:
        E_EMAIL_TAKEN (409): Email already registered
    """
    user = users_service.create_user(db, name=body.name, email=body.email)
    return success_response(user.model_dump(mode="json"))


@router.get("/users")
def list_users(db: Annotated[Session, Depends(get_db)]) -> dict:
    users = users_service.list_users(db)
    return success_response([u.model_dump(mode="json") for u in users])


@router.get("/users/{user_id}")
def get_user(user_id: UUID, db: Annotated[Session, Depends(get_db)]) -> dict:
    user = users_service.get_user(db, user_id)
    return success_response(user.model_dump(mode="json"))


@router.delete("/users/{user_id}", status_code=204)
def delete_user(user_id: UUID, db: Annotated[Session, Depends(get_db)]) -> Response:
    """Delete a user and everything they own."""
    users_service.delete_user(db, user_id)
    return Response(status_code=204)
