import sys
from pathlib import Path

# Ensure the repository root is on the Python path so "piper_backend" can be
# imported regardless of where the tests are executed from.
ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from piper_backend import models
from piper_backend.config import ProviderKind, Settings, get_settings
from piper_backend.dispatcher import ChatDispatcher
from piper_backend.main import app
from piper_backend.routers.chat import get_dispatcher
from piper_backend.store import SqlStore, get_store


class FakeProvider:
    """httpx.MockTransport handler that records requests and replays a canned reply."""

    def __init__(self):
        self.requests = []
        self.status_code = 200
        self.payload = {"choices": [{"message": {"content": "hola!"}}]}
        self.error = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, json=self.payload)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def sql_store(tmp_path):
    # In-memory SQLite database shared across threads
    engine = create_engine(
        "sqlite:///:memory:", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    models.Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    return SqlStore(TestingSessionLocal, image_dir=tmp_path / "avatars", public_base_url="http://testserver")


@pytest.fixture
def settings():
    return Settings(
        credentials={
            ProviderKind.OPENROUTER: "env-openrouter",
            ProviderKind.GROQ: "env-groq",
            ProviderKind.GEMINI: "env-gemini",
        },
        db_timeout=5.0,
        provider_timeout=5.0,
    )


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def client(sql_store, settings, fake_provider):
    app.dependency_overrides[get_store] = lambda: sql_store
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_dispatcher] = lambda: ChatDispatcher(
        sql_store, settings, transport=fake_provider.transport()
    )
    yield TestClient(app)
    app.dependency_overrides.clear()
