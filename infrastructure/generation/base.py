# infrastructure/generation/base.py
from abc import ABC, abstractmethod
from typing import List, Optional
from domain.models.analysis import ChatReply
from domain.models.conversation import ImageAttachment, Message, TabularData, UserProfile
from domain.models.persona import Agent


class GenerationError(Exception):
    """Any failure of the generative backend, including open circuits and timeouts"""
    pass


class GenerativeBackend(ABC):
    """Seam to the external text, image and speech generation service"""

    @abstractmethod
    async def generate_reply(self, agent: Agent, profile: Optional[UserProfile], history: List[Message],
                             message: str, image: Optional[ImageAttachment] = None,
                             table: Optional[TabularData] = None, delegated: bool = False) -> ChatReply:
        """Persona reply; delegated calls ignore the history"""

    @abstractmethod
    async def generate_delegation_decision(self, profile: Optional[UserProfile], history: List[Message],
                                           message: str) -> str:
        """Raw orchestrator output: free text or a (possibly fenced) JSON decision"""

    @abstractmethod
    async def generate_speech(self, text: str, voice: str, fallback_voice: Optional[str] = None) -> bytes:
        """Audio bytes for the text, retried once with the fallback voice"""

    async def close(self):
        pass
