"""Tests for session and message orchestration.

Covers:
- Session lifecycle (create, list, detail, context update, delete)
- Content messages are stored as-is
- Rewrites: only of content messages in the same session, appended with the
  source's raw text and a pointer back to it
- Failed rewrites store nothing
- End-to-end "Be formal." scenario with the echo provider
"""

from uuid import uuid4

import pytest
from sqlalchemy import select

from luma.db.models import Message, MessageType
from luma.errors import (
    ApiErrorCode,
    InvalidRequestError,
    MissingApiKeyError,
    NotFoundError,
    ProviderNotSupportedError,
)
from luma.services import sessions as sessions_service
from luma.services.llm import EchoAdapter, LLMError, LLMErrorClass, ProviderRegistry
from luma.services.prompts import update_system_prompt
from tests.factories import (
    add_test_message,
    count_messages,
    create_test_preset,
    create_test_session,
    create_test_user,
    store_test_key,
)
from tests.helpers import assert_error, data_of


@pytest.fixture
def owner(db_session, cipher):
    """A user with an openai key and a "Be formal." preset."""
    user_id = create_test_user(db_session)
    store_test_key(db_session, user_id, "openai", "sk-test", cipher=cipher)
    preset_id = create_test_preset(db_session, user_id, name="Formal", prompt_text="Be formal.")
    return user_id, preset_id


class TestSessionLifecycle:
    def test_create_pins_system_prompt_and_normalizes_provider(self, db_session, owner):
        user_id, preset_id = owner
        session = sessions_service.create_session(
            db_session, user_id, preset_id, provider_name="  OpenAI ", model="gpt-4o-mini"
        )

        assert session.provider_name == "openai"
        assert session.system_prompt_id is not None
        assert session.clipboard_enabled is False

    def test_create_with_foreign_preset_is_not_found(self, db_session, owner):
        _, preset_id = owner
        stranger = create_test_user(db_session)

        with pytest.raises(NotFoundError) as exc_info:
            sessions_service.create_session(db_session, stranger, preset_id, "openai")

        assert exc_info.value.code == ApiErrorCode.E_PRESET_NOT_FOUND

    def test_blank_provider_rejected(self, db_session, owner):
        user_id, preset_id = owner
        with pytest.raises(InvalidRequestError):
            sessions_service.create_session(db_session, user_id, preset_id, "  ")

    def test_list_sessions_is_per_user(self, db_session, owner):
        user_id, preset_id = owner
        create_test_session(db_session, user_id, preset_id)
        create_test_session(db_session, user_id, preset_id)

        assert len(sessions_service.list_sessions(db_session, user_id)) == 2
        assert sessions_service.list_sessions(db_session, uuid4()) == []

    def test_list_limit_is_clamped(self):
        assert sessions_service.clamp_limit(0) == 1
        assert sessions_service.clamp_limit(1000) == 100
        assert sessions_service.clamp_limit(20) == 20

    def test_detail_orders_messages_oldest_first(self, db_session, owner):
        user_id, preset_id = owner
        session_id = create_test_session(db_session, user_id, preset_id)
        add_test_message(db_session, session_id, "first")
        add_test_message(db_session, session_id, "second")

        detail = sessions_service.get_session_detail(db_session, session_id)

        assert [m.raw_text for m in detail.messages] == ["first", "second"]
        assert detail.preset.prompt_text == "Be formal."
        assert detail.system_prompt.prompt_text

    def test_update_context_only_touches_given_fields(self, db_session, owner):
        user_id, preset_id = owner
        session_id = create_test_session(
            db_session, user_id, preset_id, temporary_prompt="temp", context_text="ctx"
        )

        updated = sessions_service.update_session_context(
            db_session, session_id, context_text=None
        )

        assert updated.temporary_prompt == "temp"
        assert updated.context_text is None

    def test_update_context_without_fields_keeps_both(self, db_session, owner):
        user_id, preset_id = owner
        session_id = create_test_session(
            db_session, user_id, preset_id, temporary_prompt="temp", context_text="ctx"
        )

        updated = sessions_service.update_session_context(
            db_session, session_id, temporary_prompt="new temp"
        )
        assert updated.temporary_prompt == "new temp"
        assert updated.context_text == "ctx"

        unchanged = sessions_service.update_session_context(db_session, session_id)
        assert unchanged.temporary_prompt == "new temp"
        assert unchanged.context_text == "ctx"

    def test_delete_removes_messages(self, db_session, owner):
        user_id, preset_id = owner
        session_id = create_test_session(db_session, user_id, preset_id)
        add_test_message(db_session, session_id, "hello")

        sessions_service.delete_session(db_session, session_id)

        assert count_messages(db_session, session_id) == 0
        with pytest.raises(NotFoundError):
            sessions_service.get_session_or_404(db_session, session_id)

    def test_add_message_to_missing_session(self, db_session):
        with pytest.raises(NotFoundError) as exc_info:
            sessions_service.add_content_message(db_session, uuid4(), "hello")

        assert exc_info.value.code == ApiErrorCode.E_SESSION_NOT_FOUND

    def test_blank_message_rejected(self, db_session, owner):
        user_id, preset_id = owner
        session_id = create_test_session(db_session, user_id, preset_id)

        with pytest.raises(InvalidRequestError):
            sessions_service.add_content_message(db_session, session_id, "   ")


class TestRewrite:
    """Tests for rewrite_message()."""

    @pytest.mark.asyncio
    async def test_end_to_end_be_formal(self, db_session, owner, echo_registry, cipher):
        user_id, preset_id = owner
        session_id = create_test_session(
            db_session, user_id, preset_id, provider_name="openai", model="gpt-4o-mini"
        )
        message_id = add_test_message(db_session, session_id, "hey wanna grab lunch")

        rewrite = await sessions_service.rewrite_message(
            db_session, echo_registry, session_id, message_id, cipher=cipher
        )

        assert rewrite.type == MessageType.rewrite
        assert "Be formal." in rewrite.transformed_text
        assert "hey wanna grab lunch" in rewrite.transformed_text
        assert rewrite.raw_text == "hey wanna grab lunch"
        assert rewrite.source_message_id == message_id
        assert count_messages(db_session, session_id) == 2

    @pytest.mark.asyncio
    async def test_source_message_is_not_mutated(self, db_session, owner, echo_registry, cipher):
        user_id, preset_id = owner
        session_id = create_test_session(db_session, user_id, preset_id)
        message_id = add_test_message(db_session, session_id, "original text")

        await sessions_service.rewrite_message(
            db_session, echo_registry, session_id, message_id, cipher=cipher
        )

        db_session.expire_all()
        source = db_session.get(Message, message_id)
        assert source.type == MessageType.content
        assert source.raw_text == "original text"
        assert source.transformed_text is None

    @pytest.mark.asyncio
    async def test_uses_session_layers_and_current_system_prompt(
        self, db_session, owner, echo_registry, cipher
    ):
        user_id, preset_id = owner
        session_id = create_test_session(
            db_session, user_id, preset_id, temporary_prompt="Be brief.", context_text="CTX"
        )
        message_id = add_test_message(db_session, session_id, "hello")
        update_system_prompt(db_session, "SYSTEM NOW")

        rewrite = await sessions_service.rewrite_message(
            db_session, echo_registry, session_id, message_id, cipher=cipher
        )

        assert rewrite.transformed_text.startswith("[provider=openai model=gpt-4o-mini] SYSTEM NOW")
        assert "Temporary: Be brief." in rewrite.transformed_text
        assert "Context: CTX" in rewrite.transformed_text

    @pytest.mark.asyncio
    async def test_rewrite_of_rewrite_fails_and_creates_nothing(
        self, db_session, owner, echo_registry, cipher
    ):
        user_id, preset_id = owner
        session_id = create_test_session(db_session, user_id, preset_id)
        message_id = add_test_message(db_session, session_id, "hello")
        rewrite = await sessions_service.rewrite_message(
            db_session, echo_registry, session_id, message_id, cipher=cipher
        )

        with pytest.raises(NotFoundError) as exc_info:
            await sessions_service.rewrite_message(
                db_session, echo_registry, session_id, rewrite.id, cipher=cipher
            )

        assert exc_info.value.code == ApiErrorCode.E_MESSAGE_TYPE_MISMATCH
        assert count_messages(db_session, session_id) == 2

    @pytest.mark.asyncio
    async def test_message_from_other_session_is_not_found(
        self, db_session, owner, echo_registry, cipher
    ):
        user_id, preset_id = owner
        session_a = create_test_session(db_session, user_id, preset_id)
        session_b = create_test_session(db_session, user_id, preset_id)
        message_id = add_test_message(db_session, session_a, "hello")

        with pytest.raises(NotFoundError) as exc_info:
            await sessions_service.rewrite_message(
                db_session, echo_registry, session_b, message_id, cipher=cipher
            )

        assert exc_info.value.code == ApiErrorCode.E_MESSAGE_NOT_FOUND
        assert count_messages(db_session, session_b) == 0

    @pytest.mark.asyncio
    async def test_unregistered_provider_leaves_messages_unchanged(
        self, db_session, owner, cipher
    ):
        user_id, preset_id = owner
        session_id = create_test_session(db_session, user_id, preset_id, provider_name="mystery")
        message_id = add_test_message(db_session, session_id, "hello")
        registry = ProviderRegistry()
        registry.register("openai", EchoAdapter())

        with pytest.raises(ProviderNotSupportedError):
            await sessions_service.rewrite_message(
                db_session, registry, session_id, message_id, cipher=cipher
            )

        assert count_messages(db_session, session_id) == 1

    @pytest.mark.asyncio
    async def test_missing_key_stores_nothing(self, db_session, echo_registry, cipher):
        user_id = create_test_user(db_session)
        preset_id = create_test_preset(db_session, user_id)
        session_id = create_test_session(db_session, user_id, preset_id)
        message_id = add_test_message(db_session, session_id, "hello")

        with pytest.raises(MissingApiKeyError):
            await sessions_service.rewrite_message(
                db_session, echo_registry, session_id, message_id, cipher=cipher
            )

        assert count_messages(db_session, session_id) == 1

    @pytest.mark.asyncio
    async def test_provider_failure_stores_nothing(self, db_session, owner, cipher):
        class DownProvider:
            async def generate(self, req):
                raise LLMError(LLMErrorClass.PROVIDER_DOWN, "down", provider="openai")

        registry = ProviderRegistry()
        registry.register("openai", DownProvider())
        user_id, preset_id = owner
        session_id = create_test_session(db_session, user_id, preset_id)
        message_id = add_test_message(db_session, session_id, "hello")

        with pytest.raises(LLMError):
            await sessions_service.rewrite_message(
                db_session, registry, session_id, message_id, cipher=cipher
            )

        rows = db_session.scalars(
            select(Message).where(Message.type == MessageType.rewrite)
        ).all()
        assert rows == []


class TestSessionRoutes:
    """Tests for /sessions (echo registry)."""

    def test_full_flow(self, client, db_session):
        user_id = create_test_user(db_session)
        store_test_key(db_session, user_id, "openai", "sk-test")
        preset_id = create_test_preset(db_session, user_id)

        session = data_of(
            client.post(
                "/sessions",
                json={
                    "user_id": str(user_id),
                    "preset_id": str(preset_id),
                    "provider_name": "openai",
                    "model": "gpt-4o-mini",
                },
            ),
            201,
        )
        message = data_of(
            client.post(
                f"/sessions/{session['id']}/messages", json={"raw_text": "hey wanna grab lunch"}
            ),
            201,
        )
        rewrite = data_of(
            client.post(f"/sessions/{session['id']}/messages/{message['id']}/rewrite"), 201
        )

        assert rewrite["type"] == "rewrite"
        assert "Be formal." in rewrite["transformed_text"]
        assert rewrite["source_message_id"] == message["id"]

        detail = data_of(client.get(f"/sessions/{session['id']}"))
        assert [m["type"] for m in detail["messages"]] == ["content", "rewrite"]

        listed = data_of(client.get("/sessions", params={"user_id": str(user_id)}))
        assert [s["id"] for s in listed] == [session["id"]]

    def test_patch_context(self, client, db_session):
        user_id = create_test_user(db_session)
        preset_id = create_test_preset(db_session, user_id)
        session_id = create_test_session(db_session, user_id, preset_id, temporary_prompt="t")

        data = data_of(client.patch(f"/sessions/{session_id}", json={"context_text": "new"}))

        assert data["context_text"] == "new"
        assert data["temporary_prompt"] == "t"

    def test_rewrite_unknown_message(self, client, db_session):
        user_id = create_test_user(db_session)
        preset_id = create_test_preset(db_session, user_id)
        session_id = create_test_session(db_session, user_id, preset_id)

        response = client.post(f"/sessions/{session_id}/messages/{uuid4()}/rewrite")

        assert_error(response, 404, "E_MESSAGE_NOT_FOUND")

    def test_delete_session(self, client, db_session):
        user_id = create_test_user(db_session)
        preset_id = create_test_preset(db_session, user_id)
        session_id = create_test_session(db_session, user_id, preset_id)

        assert client.delete(f"/sessions/{session_id}").status_code == 204
        assert_error(client.get(f"/sessions/{session_id}"), 404, "E_SESSION_NOT_FOUND")
