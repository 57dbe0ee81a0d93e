"""User directory.

Users are created here and only referenced elsewhere. Deleting a user removes
everything they own (keys, presets, sessions, transcriptions).
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from luma.db.models import User
from luma.errors import ApiError, ApiErrorCode, NotFoundError
from luma.logging import get_logger
from luma.schemas.users import UserOut

logger = get_logger(__name__)


def get_user_or_404(db: Session, user_id: UUID) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "User not found")
    return user


def create_user(db: Session, name: str, email: str) -> UserOut:
    """Create a user.

    Raises:
        ApiError(E_EMAIL_TAKEN): If another user already has the email.
    """
    email = email.strip().lower()
    user = User(name=name.strip(), email=email)
    db.add(user)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise ApiError(ApiErrorCode.E_EMAIL_TAKEN, "Email already registered") from None
    db.commit()

    logger.info("user_created", new_user_id=str(user.id))
    return UserOut.model_validate(user)


def list_users(db: Session) -> list[UserOut]:
    stmt = select(User).order_by(User.created_at.desc())
    return [UserOut.model_validate(u) for u in db.scalars(stmt).all()]


def get_user(db: Session, user_id: UUID) -> UserOut:
    return UserOut.model_validate(get_user_or_404(db, user_id))


def delete_user(db: Session, user_id: UUID) -> None:
    """Delete a user and everything they own."""
    user = get_user_or_404(db, user_id)
    db.delete(user)
    db.commit()
    logger.info("user_deleted", deleted_user_id=str(user_id))
