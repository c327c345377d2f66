# domain/models/conversation.py
from dataclasses import dataclass
from typing import Optional
from enum import Enum

class Sender(str, Enum):
    USER = "user"
    AGENT = "agent"

class ConversationStage(str, Enum):
    DIAGNOSIS = "diagnosis"
    PRIORITIZATION = "prioritization"
    EXECUTION = "execution"
    FOLLOWUP = "followup"

@dataclass(frozen=True)
class Message:
    """Immutable chat message; the history list itself is owned by the caller"""
    id: str
    sender: Sender
    text: str = ""
    agent_id: Optional[str] = None
    image_url: Optional[str] = None

    @property
    def from_user(self) -> bool:
        return self.sender == Sender.USER

@dataclass(frozen=True)
class UserProfile:
    """Business context captured during onboarding"""
    user_name: str = ""
    user_role: str = ""
    company_name: str = ""
    company_field: str = ""
    company_size: str = ""
    company_stage: str = ""
    main_product: str = ""
    target_audience: str = ""
    main_challenge: str = ""

    @property
    def first_name(self) -> str:
        parts = self.user_name.strip().split()
        return parts[0] if parts else ""

    def to_context(self) -> str:
        return (
            "Contexto do Usuário e da Empresa:\n"
            f"- Nome do Usuário: {self.user_name}\n"
            f"- Cargo do Usuário: {self.user_role}\n"
            f"- Nome da Empresa: {self.company_name}\n"
            f"- Ramo de Atuação: {self.company_field}\n"
            f"- Porte da Empresa: {self.company_size}\n"
            f"- Tempo de Mercado: {self.company_stage}\n"
            f"- Principal Produto/Serviço: {self.main_product}\n"
            f"- Público-Alvo: {self.target_audience}\n"
            f"- Principal Desafio Atual: {self.main_challenge}"
        )

@dataclass(frozen=True)
class ImageAttachment:
    data: str  # base64, no data-url prefix
    mime_type: str

@dataclass(frozen=True)
class TabularData:
    """Already-parsed tabular input for the BI flow"""
    labels: tuple
    values: tuple
    columns: tuple = ()
    title: Optional[str] = None

    def to_prompt(self) -> str:
        rows = "\n".join(f"{label}: {value}" for label, value in zip(self.labels, self.values))
        header = f"Dados ({self.title})" if self.title else "Dados"
        if self.columns:
            header += f" - colunas: {', '.join(self.columns)}"
        return f"{header}\n{rows}"
