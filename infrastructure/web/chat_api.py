# infrastructure/web/chat_api.py
from datetime import datetime
from typing import Dict, Any, Optional, List
from fastapi import APIRouter, HTTPException, Depends, Query
from fastapi.responses import Response
from application.orchestrators.superboss_orchestrator import SuperBossOrchestrator
from application.services.conversation_service import ConversationService
from application.services.greetings import persona_greeting
from application.services.usage_tracker import PlanContext, QuotaExceededError
from domain.models.api_schemas import (
    AgentModel, AnalysisModel, ChatRequest, ChatResponse, ConversationRequest, GreetingResponse,
    HistoryResponse, NextQuestionResponse, PlanModel, SpeechRequest, SuperBossAnalyzeResponse,
    SuperBossRequest, SuperBossTurnResponse
)
from domain.models.persona import Agent
from domain.persona_registry import PersonaRegistry, UnknownPersonaError
from infrastructure.generation.base import GenerationError
from infrastructure.storage.analysis_archive import AnalysisStore
from shared.logging import logger

APOLOGY_TEXT = "Desculpe, ocorreu um erro ao processar sua solicitação. Por favor, tente novamente."

router = APIRouter(tags=["chat"])

# Populated by the application lifespan
app_state: Dict[str, Any] = {}

# Dependency injection functions
async def get_registry() -> PersonaRegistry:
    return app_state["registry"]

async def get_conversation_service() -> ConversationService:
    return app_state["conversation_service"]

async def get_orchestrator() -> SuperBossOrchestrator:
    return app_state["orchestrator"]

async def get_archive() -> Optional[AnalysisStore]:
    return app_state.get("archive")

def _persona(registry: PersonaRegistry, agent_id: str) -> Agent:
    try:
        return registry.get(agent_id)
    except UnknownPersonaError:
        raise HTTPException(status_code=404, detail=f"Agent not found: {agent_id}")

def _plan(plan: Optional[PlanModel]) -> Optional[PlanContext]:
    if plan is None:
        return None
    return PlanContext(plan=plan.plan, cycle=plan.cycle)

def _quota_error(e: QuotaExceededError) -> HTTPException:
    return HTTPException(status_code=429, detail=str(e))

@router.get("/agents", response_model=List[AgentModel])
async def list_agents(registry: PersonaRegistry = Depends(get_registry)):
    """All personas, SuperBoss first"""
    return [AgentModel.from_domain(agent) for agent in registry.all()]

@router.get("/agents/{agent_id}/greeting", response_model=GreetingResponse)
async def get_greeting(agent_id: str, registry: PersonaRegistry = Depends(get_registry)):
    agent = _persona(registry, agent_id)
    return GreetingResponse(agent_id=agent.id, text=persona_greeting(agent))

@router.post("/agents/{agent_id}/next-question", response_model=NextQuestionResponse)
async def next_question(
    agent_id: str,
    request: ConversationRequest,
    registry: PersonaRegistry = Depends(get_registry),
    service: ConversationService = Depends(get_conversation_service)
):
    """Deterministic next question for the persona, no generation involved"""
    agent = _persona(registry, agent_id)
    prompt = service.get_next_agent_question(
        agent, request.profile.to_domain(), request.domain_history(), request.message, datetime.now()
    )
    return NextQuestionResponse.from_domain(agent.id, prompt)

@router.post("/agents/{agent_id}/chat", response_model=ChatResponse)
async def chat(
    agent_id: str,
    request: ChatRequest,
    registry: PersonaRegistry = Depends(get_registry),
    service: ConversationService = Depends(get_conversation_service)
):
    agent = _persona(registry, agent_id)
    try:
        reply = await service.generate_chat_response(
            agent,
            request.profile.to_domain(),
            request.domain_history(),
            request.message,
            image=request.domain_image(),
            table=request.domain_table(),
            plan=_plan(request.plan),
            user_id=request.user_id,
        )
    except QuotaExceededError as e:
        raise _quota_error(e)
    except GenerationError as e:
        logger.error("Chat request failed", agent_id=agent.id, error=str(e))
        return ChatResponse(agent_id=agent.id, text=APOLOGY_TEXT, error=True)

    return ChatResponse.from_domain(agent.id, reply)

@router.post("/agents/{agent_id}/speech")
async def speech(
    agent_id: str,
    request: SpeechRequest,
    registry: PersonaRegistry = Depends(get_registry),
    service: ConversationService = Depends(get_conversation_service)
):
    """Synthesized audio of a persona message"""
    agent = _persona(registry, agent_id)
    try:
        audio = await service.synthesize_speech(agent, request.text, plan=_plan(request.plan),
                                                user_id=request.user_id)
    except QuotaExceededError as e:
        raise _quota_error(e)
    except GenerationError as e:
        logger.error("Speech synthesis failed", agent_id=agent.id, error=str(e))
        raise HTTPException(status_code=502, detail="Speech synthesis failed")

    media_type = "audio/wav" if audio[:4] == b"RIFF" else "audio/mpeg"
    return Response(content=audio, media_type=media_type)

@router.post("/superboss/analyze", response_model=SuperBossAnalyzeResponse)
async def superboss_analyze(
    request: ConversationRequest,
    orchestrator: SuperBossOrchestrator = Depends(get_orchestrator)
):
    """Triage only: either a conversational reply or a delegation decision"""
    try:
        outcome = await orchestrator.analyze(
            request.profile.to_domain(), request.domain_history(), request.message
        )
    except GenerationError as e:
        logger.error("SuperBoss triage failed", error=str(e))
        return SuperBossAnalyzeResponse(text_response=APOLOGY_TEXT)

    return SuperBossAnalyzeResponse(
        text_response=outcome.text_response,
        summary=outcome.summary,
        involved_agent_ids=list(outcome.involved_agent_ids) if outcome.decision else None,
    )

@router.post("/superboss/messages", response_model=SuperBossTurnResponse)
async def superboss_message(
    request: SuperBossRequest,
    orchestrator: SuperBossOrchestrator = Depends(get_orchestrator)
):
    """Full SuperBoss turn including the specialist fan-out"""
    try:
        turn = await orchestrator.run(
            request.profile.to_domain(),
            request.domain_history(),
            request.message,
            plan=_plan(request.plan),
            user_id=request.user_id,
        )
    except QuotaExceededError as e:
        raise _quota_error(e)
    except GenerationError as e:
        logger.error("SuperBoss turn failed", user_id=request.user_id, error=str(e))
        return SuperBossTurnResponse(reply=APOLOGY_TEXT)

    return SuperBossTurnResponse(
        reply=turn.reply,
        summary=turn.decision.summary if turn.decision else None,
        involved_agent_ids=list(turn.decision.involved_agent_ids) if turn.decision else None,
        analysis=AnalysisModel.from_domain(turn.analysis) if turn.analysis else None,
    )

@router.get("/superboss/history/{user_id}", response_model=HistoryResponse)
async def superboss_history(
    user_id: str,
    limit: int = Query(20, ge=1, le=100),
    archive: Optional[AnalysisStore] = Depends(get_archive)
):
    if archive is None:
        return HistoryResponse(user_id=user_id, analyses=[])
    analyses = await archive.list_recent(user_id, limit)
    return HistoryResponse(user_id=user_id, analyses=analyses)
