# tests/unit/infrastructure/generation/test_mock_adapter.py
import json
import pytest

from domain.persona_registry import DEFAULT_REGISTRY
from infrastructure.generation.base import GenerationError
from infrastructure.generation.mock_adapter import MockGenerativeBackend, silent_wav

class TestMockBackend:
    @pytest.mark.asyncio
    async def test_delegation_routes_by_keyword(self, profile):
        backend = MockGenerativeBackend()

        raw = await backend.generate_delegation_decision(profile, [], "Minhas vendas caíram e o caixa está apertado")

        payload = json.loads(raw)
        assert payload["involved_agents"] == ["fin_fluxo_caixa", "ven_fechamento"]
        assert backend.calls == [("delegation", "Minhas vendas caíram e o caixa está apertado")]

    @pytest.mark.asyncio
    async def test_delegation_without_keywords_is_a_question(self, profile):
        raw = await MockGenerativeBackend().generate_delegation_decision(profile, [], "Quero ajuda")

        assert raw.endswith("?")

    @pytest.mark.asyncio
    async def test_keywords_inside_longer_words_do_not_route(self, profile):
        raw = await MockGenerativeBackend().generate_delegation_decision(
            profile, [], "Metade do sentimento da marca mudou"
        )

        assert raw.endswith("?")

    @pytest.mark.asyncio
    async def test_plural_keywords_route(self, profile):
        raw = await MockGenerativeBackend().generate_delegation_decision(profile, [], "Quero definir metas para os times")

        assert json.loads(raw)["involved_agents"] == ["pes_formacao", "est_okr"]

    @pytest.mark.asyncio
    async def test_fixed_delegation_output(self, profile):
        backend = MockGenerativeBackend(delegation_output="texto livre")

        assert await backend.generate_delegation_decision(profile, [], "qualquer") == "texto livre"

    @pytest.mark.asyncio
    async def test_failing_agent(self, profile):
        backend = MockGenerativeBackend(failing_agent_ids=["ven_crm"])

        with pytest.raises(GenerationError):
            await backend.generate_reply(DEFAULT_REGISTRY.get("ven_crm"), profile, [], "Oi")
        assert backend.calls == [("reply", "ven_crm")]

    @pytest.mark.asyncio
    async def test_speech_is_wav(self):
        backend = MockGenerativeBackend()

        audio = await backend.generate_speech("Olá", "nova")

        assert audio[:4] == b"RIFF"
        assert audio == silent_wav()
        assert backend.calls == [("speech", "nova")]
