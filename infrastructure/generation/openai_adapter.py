# infrastructure/generation/openai_adapter.py
import asyncio
import base64
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional
import openai
from openai import AsyncOpenAI
from application.services.prompt_builder import (
    chart_image_prompt, persona_system_prompt, superboss_system_prompt
)
from domain.models.analysis import ChatReply
from domain.models.conversation import ImageAttachment, Message, Sender, TabularData, UserProfile
from domain.models.persona import Agent, Capability
from domain.persona_registry import PersonaRegistry
from infrastructure.generation.base import GenerationError, GenerativeBackend
from infrastructure.generation.parsing import parse_chart_payload
from infrastructure.resilience.circuit_breaker import (
    CircuitBreakerConfig, CircuitBreakerRegistry, CircuitOpenError
)
from shared.config import Settings
from shared.logging import logger

CHAT_BREAKER = "openai_chat"
IMAGE_BREAKER = "openai_image"
SPEECH_BREAKER = "openai_speech"


def to_chat_messages(history: List[Message]) -> List[Dict[str, Any]]:
    messages = []
    for message in history:
        text = (message.text or "").strip()
        if not text:
            continue
        role = "user" if message.sender == Sender.USER else "assistant"
        messages.append({"role": role, "content": text})
    return messages


def data_url(b64_data: str, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{b64_data}"


class OpenAIGenerativeBackend(GenerativeBackend):
    """OpenAI chat, image and speech calls, each guarded by its own circuit breaker"""

    def __init__(self, settings: Settings, registry: PersonaRegistry,
                 breakers: Optional[CircuitBreakerRegistry] = None,
                 client: Optional[AsyncOpenAI] = None):
        self.settings = settings
        self.registry = registry
        self.breakers = breakers or CircuitBreakerRegistry()
        self.client = client or AsyncOpenAI(
            api_key=settings.openai_api_key,
            timeout=settings.backend_timeout_seconds,
        )
        self.breaker_config = CircuitBreakerConfig(
            failure_threshold=settings.backend_failure_threshold,
            recovery_timeout=timedelta(minutes=2),
            timeout_seconds=settings.backend_timeout_seconds,
        )

    async def _guarded(self, breaker_name: str, func: Callable, *args, **kwargs) -> Any:
        breaker = await self.breakers.get_breaker(breaker_name, self.breaker_config)
        try:
            return await breaker.call(func, *args, **kwargs)
        except CircuitOpenError as e:
            raise GenerationError(str(e)) from e
        except asyncio.TimeoutError as e:
            raise GenerationError(f"{breaker_name} timed out") from e
        except openai.OpenAIError as e:
            raise GenerationError(f"{breaker_name} failed: {e}") from e

    async def _complete(self, messages: List[Dict[str, Any]]) -> str:
        response = await self._guarded(
            CHAT_BREAKER,
            self.client.chat.completions.create,
            model=self.settings.chat_model,
            messages=messages,
        )
        content = response.choices[0].message.content if response.choices else None
        return (content or "").strip()

    async def generate_reply(self, agent: Agent, profile: Optional[UserProfile], history: List[Message],
                             message: str, image: Optional[ImageAttachment] = None,
                             table: Optional[TabularData] = None, delegated: bool = False) -> ChatReply:
        if agent.can(Capability.IMAGES):
            return await self._visual_reply(message, image)

        system_prompt = persona_system_prompt(agent, profile, message)
        user_text = message
        if table is not None and agent.can(Capability.DATA_FILES):
            user_text = f"{message}\n\n{table.to_prompt()}"

        if image is not None:
            user_content: Any = [
                {"type": "text", "text": user_text},
                {"type": "image_url", "image_url": {"url": data_url(image.data, image.mime_type)}},
            ]
        else:
            user_content = user_text

        messages = [{"role": "system", "content": system_prompt}]
        if not delegated:
            messages.extend(to_chat_messages(history))
        messages.append({"role": "user", "content": user_content})

        text = await self._complete(messages)
        if not text:
            raise GenerationError(f"Empty reply for {agent.id}")

        if agent.can(Capability.CHARTS) and agent.can(Capability.DATA_FILES):
            parsed = parse_chart_payload(text)
            if parsed is not None:
                analysis, chart = parsed
                image_url = await self._chart_image(chart.type, chart.title, chart.labels, chart.values)
                return ChatReply(text=analysis, image_url=image_url, chart=chart)

        return ChatReply(text=text)

    async def _chart_image(self, chart_type, title, labels, values) -> Optional[str]:
        try:
            return await self._generate_image(chart_image_prompt(chart_type, title, labels, values))
        except GenerationError as e:
            logger.warning("Chart image generation failed", error=str(e))
            return None

    async def _generate_image(self, prompt: str) -> str:
        response = await self._guarded(
            IMAGE_BREAKER,
            self.client.images.generate,
            model=self.settings.image_model,
            prompt=prompt,
            n=1,
        )
        if not response.data or not response.data[0].b64_json:
            raise GenerationError("No image returned")
        return data_url(response.data[0].b64_json)

    async def _visual_reply(self, message: str, image: Optional[ImageAttachment]) -> ChatReply:
        if image is None:
            image_url = await self._generate_image(message)
            return ChatReply(text="Criei esta imagem com base na sua descrição.", image_url=image_url)

        extension = (image.mime_type.split("/")[-1] or "png").lower()
        response = await self._guarded(
            IMAGE_BREAKER,
            self.client.images.edit,
            model=self.settings.image_model,
            image=(f"input.{extension}", base64.b64decode(image.data), image.mime_type),
            prompt=message,
        )
        if not response.data or not response.data[0].b64_json:
            return ChatReply(text="Não consegui editar a imagem. Tente novamente.")
        return ChatReply(
            text="Aqui está a imagem com as alterações solicitadas.",
            image_url=data_url(response.data[0].b64_json),
        )

    async def generate_delegation_decision(self, profile: Optional[UserProfile], history: List[Message],
                                           message: str) -> str:
        messages = [{"role": "system", "content": superboss_system_prompt(self.registry, profile)}]
        messages.extend(to_chat_messages(history))
        messages.append({"role": "user", "content": message})
        return await self._complete(messages)

    async def _speech(self, text: str, voice: str) -> bytes:
        response = await self._guarded(
            SPEECH_BREAKER,
            self.client.audio.speech.create,
            model=self.settings.tts_model,
            voice=voice,
            input=text,
            response_format="mp3",
        )
        return response.content

    async def generate_speech(self, text: str, voice: str, fallback_voice: Optional[str] = None) -> bytes:
        try:
            return await self._speech(text, voice)
        except GenerationError as e:
            if not fallback_voice or fallback_voice == voice:
                raise
            logger.warning("Speech failed, retrying with fallback voice",
                           voice=voice, fallback_voice=fallback_voice, error=str(e))
            return await self._speech(text, fallback_voice)

    async def close(self):
        await self.client.close()
