"""Tests for the user directory and /users routes."""

from uuid import uuid4

import pytest
from sqlalchemy import func, select

from luma.db.models import APIKey, Message, PromptPreset, Session
from luma.errors import ApiError, ApiErrorCode, NotFoundError
from luma.services.users import create_user, delete_user, get_user, list_users
from tests.factories import (
    add_test_message,
    create_test_preset,
    create_test_session,
    create_test_user,
    store_test_key,
)
from tests.helpers import assert_error, data_of


def count_rows(db, model) -> int:
    db.expire_all()
    return db.scalar(select(func.count()).select_from(model))


class TestUserService:
    def test_create_normalizes_email(self, db_session):
        user = create_user(db_session, "  Ada  ", "Ada@Example.COM")

        assert user.name == "Ada"
        assert user.email == "ada@example.com"
        assert get_user(db_session, user.id).id == user.id

    def test_duplicate_email_rejected(self, db_session):
        create_user(db_session, "Ada", "ada@example.com")

        with pytest.raises(ApiError) as exc_info:
            create_user(db_session, "Other Ada", "ADA@example.com")

        assert exc_info.value.code == ApiErrorCode.E_EMAIL_TAKEN
        assert len(list_users(db_session)) == 1

    def test_unknown_user(self, db_session):
        with pytest.raises(NotFoundError) as exc_info:
            get_user(db_session, uuid4())

        assert exc_info.value.code == ApiErrorCode.E_USER_NOT_FOUND

    def test_delete_removes_owned_rows(self, db_session):
        user_id = create_test_user(db_session)
        store_test_key(db_session, user_id)
        preset_id = create_test_preset(db_session, user_id)
        session_id = create_test_session(db_session, user_id, preset_id)
        add_test_message(db_session, session_id, "hello")

        delete_user(db_session, user_id)

        assert count_rows(db_session, APIKey) == 0
        assert count_rows(db_session, PromptPreset) == 0
        assert count_rows(db_session, Session) == 0
        assert count_rows(db_session, Message) == 0

    def test_delete_leaves_other_users_alone(self, db_session):
        doomed = create_test_user(db_session)
        survivor = create_test_user(db_session)
        store_test_key(db_session, survivor)

        delete_user(db_session, doomed)

        assert [u.id for u in list_users(db_session)] == [survivor]
        assert count_rows(db_session, APIKey) == 1


class TestUserRoutes:
    def test_create_and_get(self, client):
        created = data_of(
            client.post("/users", json={"name": "Ada", "email": "ada@example.com"}), 201
        )

        fetched = data_of(client.get(f"/users/{created['id']}"))
        assert fetched["email"] == "ada@example.com"
        assert [u["id"] for u in data_of(client.get("/users"))] == [created["id"]]

    def test_duplicate_email_is_conflict(self, client):
        body = {"name": "Ada", "email": "ada@example.com"}
        client.post("/users", json=body)

        assert_error(client.post("/users", json=body), 409, "E_EMAIL_TAKEN")

    def test_invalid_email_rejected(self, client):
        response = client.post("/users", json={"name": "Ada", "email": "not-an-email"})
        assert_error(response, 400, "E_INVALID_REQUEST")

    def test_delete(self, client):
        created = data_of(
            client.post("/users", json={"name": "Ada", "email": "ada@example.com"}), 201
        )

        assert client.delete(f"/users/{created['id']}").status_code == 204
        assert_error(client.get(f"/users/{created['id']}"), 404, "E_USER_NOT_FOUND")
