"""
Tests for the HTTP API.

Tests verify:
- /chat runs the orchestrator and returns camelCase metadata
- /analyze works without an LLM
- /state returns stored state or 404
- API key enforcement when configured
- Payload validation
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from bant_sdr.agents.llm_client import Completion
from bant_sdr.api import routes
from bant_sdr.api.routes import get_orchestrator
from bant_sdr.core.config import settings
from bant_sdr.main import app
from bant_sdr.orchestration.graph import ConversationOrchestrator
from bant_sdr.orchestration.store import InMemoryStateStore


class FakeLLM:
    @property
    def is_ready(self) -> bool:
        return True

    async def complete(self, messages, *, max_tokens, temperature, tools=None) -> Completion:
        return Completion(content="Olá! Como posso ajudar?")


@pytest.fixture
def orchestrator() -> ConversationOrchestrator:
    return ConversationOrchestrator(FakeLLM(), InMemoryStateStore())


@pytest.fixture
def client(orchestrator: ConversationOrchestrator, monkeypatch: pytest.MonkeyPatch):
    """TestClient with the orchestrator replaced and no API key required."""
    monkeypatch.setattr(settings, "api_key", None)
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    yield TestClient(app)
    app.dependency_overrides.clear()


CHAT_PAYLOAD = {
    "message": "quem decide isso comigo é o diretor",
    "history": [
        {"role": "assistant", "content": "Oi! Faz sentido te mostrar como a IA ajuda no atendimento?"},
        {"role": "user", "content": "Sim, faz sentido. Gastamos hoje cerca de R$5000 com atendimento"},
    ],
    "context": {"channel": "whatsapp", "contactId": "5584999999999"},
}


class TestHealth:
    """Tests for service endpoints."""

    def test_health(self, client: TestClient) -> None:
        """Test health check."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_config_has_no_secrets(self, client: TestClient) -> None:
        """Test config exposes model settings only."""
        data = client.get("/config").json()
        assert data["model"]["name"]
        assert "groq_api_key" not in data


class TestChat:
    """Tests for POST /chat."""

    def test_whatsapp_turn(self, client: TestClient) -> None:
        """Test a sales turn returns BANT metadata."""
        response = client.post("/chat", json=CHAT_PAYLOAD)
        assert response.status_code == 200

        data = response.json()
        assert data["answer"] == "Olá! Como posso ajudar?"
        assert data["stage"] == "need"
        assert data["qualificationScore"] == 65
        assert data["nextAction"] == "DISCOVER_PAIN"
        assert data["toolsUsed"] == []
        assert data["stopped"] is False

    def test_api_turn_has_no_stage(self, client: TestClient) -> None:
        """Test non-WhatsApp turns carry no BANT metadata."""
        response = client.post("/chat", json={"message": "Oi"})
        assert response.status_code == 200
        assert response.json()["stage"] is None

    def test_legacy_flags_in_context(self, client: TestClient) -> None:
        """Test extra context flags select the channel."""
        payload = {"message": "Oi", "context": {"fromWhatsApp": True, "from": "5584"}}
        assert client.post("/chat", json=payload).json()["stage"] == "opening"

    def test_stop(self, client: TestClient) -> None:
        """Test stop commands over HTTP."""
        data = client.post("/chat", json={"message": "parar", "context": {"channel": "whatsapp"}}).json()
        assert data["stopped"] is True

    def test_empty_message_rejected(self, client: TestClient) -> None:
        """Test whitespace messages fail validation."""
        assert client.post("/chat", json={"message": "   "}).status_code == 422

    def test_bad_role_rejected(self, client: TestClient) -> None:
        """Test unknown history roles fail validation."""
        payload = {"message": "Oi", "history": [{"role": "bot", "content": "x"}]}
        assert client.post("/chat", json=payload).status_code == 422


class TestAnalyze:
    """Tests for POST /analyze."""

    def test_analysis(self, client: TestClient) -> None:
        """Test deterministic analysis of a history."""
        payload = {"history": CHAT_PAYLOAD["history"], "message": CHAT_PAYLOAD["message"]}
        data = client.post("/analyze", json=payload).json()

        assert data["stage"] == "need"
        assert data["bantInfo"]["budget"] == "R$5000"
        assert data["bantInfo"]["authority"] == "diretor"
        assert data["nextAction"] == "DISCOVER_PAIN"
        assert data["nextStage"] == "timing"
        assert data["progressPercentage"] == 67

    def test_empty_history_is_opening(self, client: TestClient) -> None:
        """Test opening has no next action."""
        data = client.post("/analyze", json={}).json()
        assert data["stage"] == "opening"
        assert data["nextAction"] is None
        assert data["qualificationScore"] == 0


class TestState:
    """Tests for GET /state/{contact_id}."""

    def test_missing_state(self, client: TestClient) -> None:
        """Test unknown contacts return 404."""
        assert client.get("/state/nobody").status_code == 404

    def test_unreadable_state_is_missing(self, client: TestClient, orchestrator: ConversationOrchestrator) -> None:
        """Test a malformed stored record returns 404, not a server error."""
        orchestrator.store._records["state:broken"] = '{"metadata": "x"}'
        assert client.get("/state/broken").status_code == 404

    def test_state_after_chat(self, client: TestClient) -> None:
        """Test the state written by /chat is readable."""
        client.post("/chat", json=CHAT_PAYLOAD)
        data = client.get("/state/5584999999999").json()

        assert data["stage"] == "need"
        assert data["nextBestAction"] == "DISCOVER_PAIN"
        assert data["metadata"]["messageCount"] == 3
        assert data["metadata"]["bantInfo"]["authority"] == "diretor"


class ClosingStore(InMemoryStateStore):
    """In-memory store that records whether it was closed."""

    def __init__(self) -> None:
        super().__init__()
        self.closed = False

    async def close(self) -> None:
        self.closed = True


class TestLifespan:
    """Tests for application shutdown."""

    def test_shutdown_closes_store(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the shared orchestrator's store is closed on shutdown."""
        store = ClosingStore()
        monkeypatch.setattr(routes, "_orchestrator", ConversationOrchestrator(FakeLLM(), store))

        with TestClient(app):
            pass

        assert store.closed is True
        assert routes._orchestrator is None


class TestApiKey:
    """Tests for x-api-key enforcement."""

    def test_missing_key(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test requests without the header are rejected when a key is set."""
        monkeypatch.setattr(settings, "api_key", "secret")
        assert client.post("/chat", json={"message": "Oi"}).status_code == 401

    def test_wrong_key(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test a wrong key is rejected."""
        monkeypatch.setattr(settings, "api_key", "secret")
        response = client.post("/analyze", json={}, headers={"x-api-key": "nope"})
        assert response.status_code == 401

    def test_valid_key(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the right key is accepted."""
        monkeypatch.setattr(settings, "api_key", "secret")
        response = client.post("/analyze", json={}, headers={"x-api-key": "secret"})
        assert response.status_code == 200

    def test_health_is_open(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test health never requires a key."""
        monkeypatch.setattr(settings, "api_key", "secret")
        assert client.get("/health").status_code == 200
