# domain/models/persona.py
from dataclasses import dataclass, field
from typing import FrozenSet
from enum import Enum

class AgentArea(str, Enum):
    STRATEGY = "strategy"
    SALES = "sales"
    MARKETING = "marketing"
    PEOPLE = "people"
    PROCESSES = "processes"
    FINANCE = "finance"
    ORCHESTRATOR = "orchestrator"

class Capability(str, Enum):
    IMAGES = "images"
    DATA_FILES = "data_files"
    DOCUMENTS = "documents"
    CHARTS = "charts"
    PRICING = "pricing"

class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"

@dataclass(frozen=True)
class Agent:
    """Immutable persona definition"""
    id: str
    name: str
    specialty: str
    area: AgentArea
    instruction: str
    capabilities: FrozenSet[Capability] = field(default_factory=frozenset)
    voice: str = ""
    gender: Gender = Gender.MALE

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities

    @property
    def is_orchestrator(self) -> bool:
        return self.area == AgentArea.ORCHESTRATOR
