# infrastructure/generation/mock_adapter.py
import asyncio
import io
import json
import re
import wave
from typing import Dict, Iterable, List, Optional, Tuple
from application.services.greetings import normalize
from domain.models.analysis import ChatReply
from domain.models.conversation import ImageAttachment, Message, TabularData, UserProfile
from domain.models.persona import Agent
from infrastructure.generation.base import GenerationError, GenerativeBackend

# Keyword -> specialist routing used by the offline orchestrator, matched on word boundaries
ROUTING_KEYWORDS: Tuple[Tuple[str, str], ...] = (
    (r"\bprecos?\b", "fin_custos"),
    (r"\bprecific", "fin_custos"),
    (r"\bcaixa\b", "fin_fluxo_caixa"),
    (r"\borcamentos?\b", "fin_orcamento"),
    (r"\bvendas?\b", "ven_fechamento"),
    (r"\bprospec", "ven_prospeccao"),
    (r"\bclientes?\b", "ven_crm"),
    (r"\bmarketing\b", "mkt_funil"),
    (r"\banuncios?\b", "mkt_anuncios"),
    (r"\bredes sociais\b", "mkt_redes"),
    (r"\binstagram\b", "mkt_redes"),
    (r"\bcontrat", "pes_contratacao"),
    (r"\bequipes?\b", "pes_formacao"),
    (r"\btimes?\b", "pes_formacao"),
    (r"\bprocessos?\b", "pro_mapeamento"),
    (r"\bautoma", "pro_automacao"),
    (r"\bestrategi", "est_planejamento"),
    (r"\bconcorren", "est_mercado"),
    (r"\bmetas?\b", "est_okr"),
)

_ROUTING_PATTERNS = tuple((re.compile(pattern), agent_id) for pattern, agent_id in ROUTING_KEYWORDS)

# 1x1 transparent PNG
_PIXEL_PNG = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)


def silent_wav(duration_ms: int = 200, sample_rate: int = 24000) -> bytes:
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(b"\x00\x00" * (sample_rate * duration_ms // 1000))
    return buffer.getvalue()


class MockGenerativeBackend(GenerativeBackend):
    """Deterministic offline backend for development and tests"""

    def __init__(self, failing_agent_ids: Iterable[str] = (), delay_seconds: Dict[str, float] = None,
                 delegation_output: Optional[str] = None):
        self.failing_agent_ids = set(failing_agent_ids)
        self.delay_seconds = delay_seconds or {}
        self.delegation_output = delegation_output
        self.calls: List[Tuple[str, str]] = []

    async def generate_reply(self, agent: Agent, profile: Optional[UserProfile], history: List[Message],
                             message: str, image: Optional[ImageAttachment] = None,
                             table: Optional[TabularData] = None, delegated: bool = False) -> ChatReply:
        self.calls.append(("reply", agent.id))
        delay = self.delay_seconds.get(agent.id)
        if delay:
            await asyncio.sleep(delay)
        if agent.id in self.failing_agent_ids:
            raise GenerationError(f"Simulated failure for {agent.id}")

        if delegated:
            return ChatReply(
                text=f"{agent.name} ({agent.specialty}): plano de ação focado na minha área para o problema apresentado."
            )
        if image is not None:
            return ChatReply(
                text="Aqui está a imagem com as alterações solicitadas.",
                image_url=f"data:image/png;base64,{_PIXEL_PNG}",
            )
        if table is not None:
            return ChatReply(text=f"{agent.name}: analisei {len(table.labels)} linhas de dados.")
        return ChatReply(text=f"{agent.name}: entendi. Pode detalhar um pouco mais o cenário?")

    async def generate_delegation_decision(self, profile: Optional[UserProfile], history: List[Message],
                                           message: str) -> str:
        self.calls.append(("delegation", message))
        if self.delegation_output is not None:
            return self.delegation_output

        normalized = normalize(message)
        ids: List[str] = []
        for pattern, agent_id in _ROUTING_PATTERNS:
            if pattern.search(normalized) and agent_id not in ids:
                ids.append(agent_id)
        if not ids:
            return "Entendi. Qual é o produto, o público-alvo e o principal objetivo para os próximos meses?"
        return json.dumps({"summary": message.strip(), "involved_agents": ids[:3]}, ensure_ascii=False)

    async def generate_speech(self, text: str, voice: str, fallback_voice: Optional[str] = None) -> bytes:
        self.calls.append(("speech", voice))
        return silent_wav()
