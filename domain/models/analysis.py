# domain/models/analysis.py
from dataclasses import dataclass, field
from typing import Optional, Tuple
from domain.models.conversation import ConversationStage
from domain.models.persona import Agent

@dataclass(frozen=True)
class NextPrompt:
    """Deterministic output of the question engine"""
    question: str
    stage: ConversationStage
    greeting_prefix: Optional[str] = None
    terminal: bool = False

    @property
    def text(self) -> str:
        if self.greeting_prefix:
            return f"{self.greeting_prefix} {self.question}"
        return self.question

@dataclass(frozen=True)
class ChartSpec:
    type: str
    title: str
    labels: Tuple[str, ...]
    values: Tuple[float, ...]

@dataclass(frozen=True)
class ChatReply:
    text: str
    image_url: Optional[str] = None
    chart: Optional[ChartSpec] = None

@dataclass(frozen=True)
class DelegationDecision:
    """SuperBoss understanding of a problem and the specialists to consult"""
    summary: str
    involved_agent_ids: Tuple[str, ...] = ()

@dataclass(frozen=True)
class SuperBossOutcome:
    """Either a conversational reply or a delegation decision, never both"""
    text_response: Optional[str] = None
    decision: Optional[DelegationDecision] = None

    def __post_init__(self):
        if (self.text_response is None) == (self.decision is None):
            raise ValueError("SuperBossOutcome needs exactly one of text_response or decision")

    @property
    def summary(self) -> Optional[str]:
        return self.decision.summary if self.decision else None

    @property
    def involved_agent_ids(self) -> Optional[Tuple[str, ...]]:
        return self.decision.involved_agent_ids if self.decision else None

@dataclass(frozen=True)
class SpecialistSolution:
    agent: Agent
    solution: str
    fallback: bool = False

@dataclass(frozen=True)
class Analysis:
    """Aggregated specialist answers, ordered like the delegation decision"""
    problem: str
    solutions: Tuple[SpecialistSolution, ...] = field(default_factory=tuple)

@dataclass(frozen=True)
class SuperBossTurn:
    reply: str
    decision: Optional[DelegationDecision] = None
    analysis: Optional[Analysis] = None
