"""Pytest configuration and fixtures for Luma tests.

Test isolation strategy:
- Every test gets its own SQLite database file under tmp_path, so sessions
  opened by background tasks and concurrent lookups see committed data
  without sharing a connection
- Settings, cipher and engine caches are cleared around each test
- The vault secret is deterministic (TEST_SECRET)
- Route tests run the real app (lifespan included) through TestClient with
  an injected provider registry
"""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from luma.app import add_request_id_middleware, create_app
from luma.config import clear_settings_cache
from luma.db.engine import create_db_engine, get_engine
from luma.db.models import Base
from luma.db.session import create_session_factory, set_session_factory
from luma.services.crypto import SecretCipher, clear_cipher_cache
from luma.services.llm import EchoAdapter, ProviderRegistry
from tests.helpers import TEST_SECRET


def _clear_caches() -> None:
    clear_settings_cache()
    clear_cipher_cache()
    get_engine.cache_clear()


@pytest.fixture(autouse=True)
def test_env(tmp_path, monkeypatch) -> Generator[str, None, None]:
    """Point every test at its own database and a fixed vault secret."""
    database_url = f"sqlite:///{tmp_path / 'luma_test.db'}"
    monkeypatch.setenv("LUMA_ENV", "test")
    monkeypatch.setenv("DATABASE_URL", database_url)
    monkeypatch.setenv("LUMA_SECRET_KEY", TEST_SECRET)
    monkeypatch.setenv("LUMA_LOG_JSON", "false")
    _clear_caches()

    yield database_url

    set_session_factory(None)
    _clear_caches()


@pytest.fixture
def engine(test_env: str) -> Generator[Engine, None, None]:
    """Engine for this test's database, with every table created."""
    engine = create_db_engine(test_env)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> Generator[sessionmaker[Session], None, None]:
    """Session factory bound to the test engine and installed as the default."""
    factory = create_session_factory(engine)
    set_session_factory(factory)
    yield factory
    set_session_factory(None)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Provide a database session on the test database."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def cipher() -> SecretCipher:
    """Vault cipher matching the process cipher under test settings."""
    return SecretCipher(TEST_SECRET)


@pytest.fixture
def echo_registry() -> ProviderRegistry:
    """Registry where "openai" and "gemini" are served by the echo provider."""
    registry = ProviderRegistry()
    registry.register("openai", EchoAdapter())
    registry.register("gemini", EchoAdapter())
    return registry


@pytest.fixture
def app(session_factory: sessionmaker[Session], echo_registry: ProviderRegistry):
    """The application wired to the test database and the echo registry."""
    app = create_app(provider_registry=echo_registry)
    add_request_id_middleware(app)
    return app


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Provide a FastAPI test client (lifespan runs on enter)."""
    with TestClient(app) as client:
        yield client
