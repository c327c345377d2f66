# tests/unit/infrastructure/web/test_chat_api.py
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from application.orchestrators.superboss_orchestrator import SuperBossOrchestrator
from application.services.conversation_service import ConversationService
from application.services.usage_tracker import InMemoryUsageTracker, QuotaPolicy
from domain.persona_registry import DEFAULT_REGISTRY
from infrastructure.generation.base import GenerationError
from infrastructure.generation.mock_adapter import MockGenerativeBackend
from infrastructure.storage.analysis_archive import InMemoryAnalysisArchive
from infrastructure.web import chat_api
from infrastructure.web.chat_api import APOLOGY_TEXT, router
from shared.config import PlanLimits

PROFILE = {"user_name": "Ana Souza", "company_name": "Padaria Aurora", "main_product": "Bolos artesanais"}

def build_client(backend, archive=None):
    tracker = InMemoryUsageTracker()
    policy = QuotaPolicy(PlanLimits(chat_daily={"free": 1}))
    service = ConversationService(backend, usage_tracker=tracker, quota_policy=policy)
    orchestrator = SuperBossOrchestrator(DEFAULT_REGISTRY, backend, usage_tracker=tracker,
                                         quota_policy=policy, archive=archive)

    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[chat_api.get_registry] = lambda: DEFAULT_REGISTRY
    app.dependency_overrides[chat_api.get_conversation_service] = lambda: service
    app.dependency_overrides[chat_api.get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[chat_api.get_archive] = lambda: archive
    return TestClient(app)

@pytest.fixture
def archive():
    return InMemoryAnalysisArchive()

@pytest.fixture
def client(archive):
    return build_client(MockGenerativeBackend(), archive)

class TestPersonaRoutes:
    def test_list_agents(self, client):
        response = client.get("/agents")

        agents = response.json()
        assert response.status_code == 200
        assert agents[0]["id"] == "super_boss"
        assert len(agents) == len(DEFAULT_REGISTRY.all())

    def test_unknown_agent(self, client):
        assert client.get("/agents/nao_existe/greeting").status_code == 404
        assert client.post("/agents/nao_existe/chat", json={"message": "Oi"}).status_code == 404

    def test_greeting(self, client):
        response = client.get("/agents/ven_crm/greeting")

        assert response.status_code == 200
        assert response.json()["agent_id"] == "ven_crm"
        assert response.json()["text"]

    def test_next_question(self, client):
        response = client.post("/agents/ven_crm/next-question", json={
            "message": "Quero vender mais",
            "profile": PROFILE,
            "history": [{"id": "m1", "sender": "user", "text": "Quero vender mais"}]
        })

        body = response.json()
        assert response.status_code == 200
        assert body["question"].endswith("?")
        assert body["stage"]

class TestChatRoutes:
    def test_chat(self, client):
        response = client.post("/agents/ven_crm/chat", json={"message": "Oi", "profile": PROFILE})

        body = response.json()
        assert response.status_code == 200
        assert body["text"].startswith(DEFAULT_REGISTRY.get("ven_crm").name)
        assert body["error"] is False

    def test_chat_failure_returns_apology(self):
        client = build_client(MockGenerativeBackend(failing_agent_ids=["ven_crm"]))

        response = client.post("/agents/ven_crm/chat", json={"message": "Oi"})

        assert response.status_code == 200
        assert response.json() == {"agent_id": "ven_crm", "text": APOLOGY_TEXT, "image_url": None,
                                   "chart": None, "error": True}

    def test_chat_quota(self, client):
        payload = {"message": "Oi", "user_id": "u1", "plan": {"plan": "free"}}

        assert client.post("/agents/ven_crm/chat", json=payload).status_code == 200
        response = client.post("/agents/ven_crm/chat", json=payload)

        assert response.status_code == 429
        assert "limite diário" in response.json()["detail"]

    def test_speech(self, client):
        response = client.post("/agents/bi_analise/speech", json={"text": "Olá"})

        assert response.status_code == 200
        assert response.headers["content-type"] == "audio/wav"
        assert response.content[:4] == b"RIFF"

    def test_speech_requires_text(self, client):
        assert client.post("/agents/bi_analise/speech", json={"text": ""}).status_code == 422

class TestSuperBossRoutes:
    def test_analyze_greeting(self, client):
        response = client.post("/superboss/analyze", json={"message": "Oi", "profile": PROFILE})

        body = response.json()
        assert body["text_response"]
        assert body["involved_agent_ids"] is None

    def test_analyze_delegation(self, client):
        response = client.post("/superboss/analyze", json={"message": "Minhas vendas caíram muito"})

        body = response.json()
        assert body["text_response"] is None
        assert body["involved_agent_ids"] == ["ven_fechamento"]

    def test_analyze_failure_returns_apology(self):
        class FailingBackend(MockGenerativeBackend):
            async def generate_delegation_decision(self, profile, history, message):
                raise GenerationError("backend down")

        client = build_client(FailingBackend())

        response = client.post("/superboss/analyze", json={"message": "Minhas vendas caíram muito"})

        assert response.status_code == 200
        assert response.json()["text_response"] == APOLOGY_TEXT

    def test_message_runs_specialists_and_archives(self, client, archive):
        response = client.post("/superboss/messages", json={
            "message": "Minhas vendas caíram muito", "user_id": "u1"
        })

        body = response.json()
        assert response.status_code == 200
        assert body["reply"].startswith("Entendido.")
        assert [s["agent_id"] for s in body["analysis"]["solutions"]] == ["ven_fechamento"]

        history = client.get("/superboss/history/u1").json()
        assert history["analyses"][0]["involved_agents"] == ["ven_fechamento"]

    def test_message_quota(self, client):
        response = client.post("/superboss/messages", json={
            "message": "Minhas vendas caíram muito", "user_id": "u1", "plan": {"plan": "free"}
        })

        assert response.status_code == 429

    def test_history_without_archive(self):
        client = build_client(MockGenerativeBackend())

        response = client.get("/superboss/history/u1")

        assert response.json() == {"user_id": "u1", "analyses": []}

    def test_history_limit_is_validated(self, client):
        assert client.get("/superboss/history/u1?limit=0").status_code == 422
