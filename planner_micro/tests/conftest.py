import json
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from planner_micro.config import config
from planner_micro.db.connection import configure_store
from planner_micro.services.catalog_service import ensure_seed_data
from planner_micro.services.gemini_service import GeminiService, configure_gemini_service
from planner_micro.services.record_store import RecordStore
from planner_micro.services.session_context import session_registry


class StubChat:
    def __init__(self, model):
        self.model = model

    def send_message(self, parts):
        return self.model.respond(parts)


class StubModel:
    """Stands in for genai.GenerativeModel; replies with canned text or raises"""

    def __init__(self, replies):
        self.replies = replies
        self.calls = []

    def __call__(self, model_name, **kwargs):
        self.calls.append(kwargs)
        return self

    def start_chat(self, history=None):
        self.history = history
        return StubChat(self)

    def generate_content(self, parts):
        return self.respond(parts)

    def respond(self, parts):
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(text=reply)


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    store = RecordStore(engine)
    store.ensure_schema()
    ensure_seed_data(store)
    configure_store(store)
    yield store
    configure_store(None)


@pytest.fixture
def stub_model():
    model = StubModel([json.dumps({"isSafe": True, "reason": None})] * 20)
    configure_gemini_service(GeminiService(model_name="stub", model_factory=model))
    yield model
    configure_gemini_service(None)


@pytest.fixture(autouse=True)
def clean_sessions():
    session_registry.clear()
    yield
    session_registry.clear()


@pytest.fixture
def client(store, stub_model, monkeypatch):
    monkeypatch.setattr(config, "POLLER_ENABLED", False)
    from planner_micro.main import app

    with TestClient(app) as client:
        yield client


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def student(client):
    response = client.post("/register", json={"id": "s1001", "password": "pw-student", "name": "Sam Student"})
    assert response.status_code == 200
    return {"id": "s1001", "headers": auth_header(response.json()["access_token"])}


@pytest.fixture
def admin(client):
    admin_id = config.ADMIN_USER_IDS[0]
    response = client.post("/register", json={"id": admin_id, "password": "pw-admin", "name": "Ada Admin"})
    assert response.status_code == 200
    return {"id": admin_id, "headers": auth_header(response.json()["access_token"])}
