# application/services/conversation_service.py
from datetime import datetime
from typing import List, Optional
from application.services.question_engine import QuestionEngine
from application.services.usage_tracker import (
    PlanContext, QuotaPolicy, RESOURCE_CHAT, RESOURCE_TTS, UsageTracker
)
from domain.models.analysis import ChatReply, NextPrompt
from domain.models.conversation import ImageAttachment, Message, TabularData, UserProfile
from domain.models.persona import Agent
from domain.persona_registry import fallback_voice, preferred_voice
from infrastructure.generation.base import GenerationError, GenerativeBackend
from shared.logging import logger


class ConversationService:
    """Single persona chat: next question, generated replies and speech"""

    def __init__(self, backend: GenerativeBackend, question_engine: Optional[QuestionEngine] = None,
                 usage_tracker: Optional[UsageTracker] = None, quota_policy: Optional[QuotaPolicy] = None):
        self.backend = backend
        self.question_engine = question_engine or QuestionEngine()
        self.usage_tracker = usage_tracker
        self.quota_policy = quota_policy

    def get_next_agent_question(self, agent: Agent, profile: Optional[UserProfile], history: List[Message],
                                user_message: str, now: Optional[datetime] = None) -> NextPrompt:
        return self.question_engine.next_prompt(agent, profile, history, user_message, now)

    async def _consume(self, resource: str, plan: Optional[PlanContext], user_id: Optional[str]):
        if plan is None or self.usage_tracker is None or self.quota_policy is None:
            return
        await self.quota_policy.consume(self.usage_tracker, resource, plan, user_id)

    async def generate_chat_response(self, agent: Agent, profile: Optional[UserProfile], history: List[Message],
                                     message: str, image: Optional[ImageAttachment] = None,
                                     table: Optional[TabularData] = None, is_delegated: bool = False,
                                     plan: Optional[PlanContext] = None,
                                     user_id: Optional[str] = None) -> ChatReply:
        """Generated persona reply; backend failures propagate as GenerationError"""
        await self._consume(RESOURCE_CHAT, plan, user_id)
        try:
            return await self.backend.generate_reply(
                agent, profile, history, message, image=image, table=table, delegated=is_delegated
            )
        except GenerationError as e:
            logger.error("Chat generation failed", agent_id=agent.id, error=str(e))
            raise

    async def synthesize_speech(self, agent: Agent, text: str, plan: Optional[PlanContext] = None,
                                user_id: Optional[str] = None) -> bytes:
        await self._consume(RESOURCE_TTS, plan, user_id)
        return await self.backend.generate_speech(text, preferred_voice(agent), fallback_voice(agent))
