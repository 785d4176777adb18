import os
import threading
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

import main
from services import auth
from services.compliance import COMPLIANCE_SYSTEM
from services.copywriter import DESCRIPTION_SYSTEM, HASHTAG_SYSTEM, SOCIAL_SYSTEM, VIDEO_SYSTEM
from services.seo import SEO_SYSTEM

DEFAULT_REPLIES = {
    DESCRIPTION_SYSTEM: (
        "Bright 3 bedroom house with hardwood floors, an updated kitchen and a fenced backyard. "
        "Close to parks and shopping. Schedule a tour to see it in person."
    ),
    HASHTAG_SYSTEM: "1. #PortlandHomes\n2. #JustListed\n3. #justlisted, #DreamHome",
    SOCIAL_SYSTEM: "Instagram: Just listed ✨\nFacebook: Hardwood floors and a big backyard\nTikTok: Tour time 🏡",
    VIDEO_SYSTEM: "SHOT: Front porch\nVOICEOVER: Welcome home.",
    COMPLIANCE_SYSTEM: '[{"type": "error", "message": "Implies a preferred buyer", "suggestion": "Describe the space"}]',
    SEO_SYSTEM: '```json\n[{"name": "Title Length", "score": 12, "maxScore": 10, "suggestions": ["Shorten it"]}]\n```',
}

class FakeCompletions:
    """Stands in for client.chat.completions; replies are chosen by system prompt."""

    def __init__(self, replies):
        self.replies = replies
        self.calls = []
        self._lock = threading.Lock()

    def create(self, **kwargs):
        with self._lock:
            self.calls.append(kwargs)
        system = kwargs["messages"][0]["content"]
        reply = self.replies.get(system, "")
        if isinstance(reply, Exception):
            raise reply
        message = SimpleNamespace(content=reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

class FakeOpenAI:
    def __init__(self, replies=None):
        merged = dict(DEFAULT_REPLIES)
        merged.update(replies or {})
        self.completions = FakeCompletions(merged)
        self.chat = SimpleNamespace(completions=self.completions)

    @property
    def calls(self):
        return self.completions.calls

    def systems_called(self):
        return [call["messages"][0]["content"] for call in self.calls]

@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch):
    monkeypatch.setattr(auth, "BCRYPT_ROUNDS", 4)

@pytest.fixture
def db_path(tmp_path):
    return os.path.join(str(tmp_path), "data", "fairlist.db")

@pytest.fixture
def client(db_path, monkeypatch):
    monkeypatch.setattr(main, "DB_PATH", db_path)
    monkeypatch.setattr(main, "openai_client", None)
    monkeypatch.setattr(main, "DEMO_MODE", False)
    monkeypatch.setattr(main, "SEED_DEMO_USERS", True)
    main.llm_rate_limiter.reset()
    with TestClient(main.app) as test_client:
        yield test_client
    main.llm_rate_limiter.reset()

@pytest.fixture
def fake_llm(monkeypatch):
    fake = FakeOpenAI()
    monkeypatch.setattr(main, "openai_client", fake)
    return fake

def login(test_client, email="agent@example.com", password="password123"):
    response = test_client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()

def set_tier(test_client, tier):
    response = test_client.post("/api/subscriptions/upgrade", json={"tier": tier})
    assert response.status_code == 200, response.text
    return response.json()

@pytest.fixture
def agent(client):
    """The seeded demo agent, logged in (free tier)."""
    return login(client)
