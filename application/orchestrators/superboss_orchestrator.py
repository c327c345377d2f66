# application/orchestrators/superboss_orchestrator.py
from typing import List, Optional
from datetime import datetime
import asyncio
import asyncpg

from application.services.greetings import is_bare_greeting, superboss_greeting_reply
from application.services.pricing_heuristic import is_pricing_request, summarize_pricing_request
from application.services.prompt_builder import delegation_message
from application.services.usage_tracker import (
    PlanContext, QuotaPolicy, RESOURCE_SUPERBOSS, UsageTracker
)
from domain.models.analysis import (
    Analysis, ChatReply, DelegationDecision, SpecialistSolution, SuperBossOutcome, SuperBossTurn
)
from domain.models.conversation import Message, UserProfile
from domain.models.persona import Agent
from domain.persona_registry import PRICING_SPECIALIST_ID, PersonaRegistry
from infrastructure.generation.base import GenerativeBackend
from infrastructure.generation.parsing import parse_delegation_output
from infrastructure.storage.analysis_archive import AnalysisStore
from shared.config import Settings
from shared.logging import logger, log_delegation_decision, log_specialist_consultation

MIN_PROBLEM_LENGTH = 3

NO_SPECIALIST_TEXT = "Não identifiquei agentes específicos para este problema. Poderia fornecer mais detalhes?"

FALLBACK_TEXT = (
    "{name} teve dificuldade em gerar uma resposta completa; como especialista em {specialty}, "
    "recomendo um plano de ação direto: 1) diagnóstico breve; 2) medidas-chave; 3) KPI de acompanhamento."
)

ACKNOWLEDGEMENT_TEXT = (
    'Entendido. Analisando seu problema: "{summary}". Vou consultar os especialistas necessários '
    "e compilar uma análise completa para você."
)


def fallback_solution(agent: Agent) -> SpecialistSolution:
    return SpecialistSolution(
        agent=agent,
        solution=FALLBACK_TEXT.format(name=agent.name, specialty=agent.specialty),
        fallback=True,
    )


class SuperBossOrchestrator:
    """Triage a business problem and fan it out to the specialists that should answer it"""

    def __init__(self,
                 registry: PersonaRegistry,
                 backend: GenerativeBackend,
                 usage_tracker: Optional[UsageTracker] = None,
                 quota_policy: Optional[QuotaPolicy] = None,
                 archive: Optional[AnalysisStore] = None,
                 settings: Optional[Settings] = None):
        self.registry = registry
        self.backend = backend
        self.usage_tracker = usage_tracker
        self.quota_policy = quota_policy
        self.archive = archive
        self.settings = settings or Settings()

    async def analyze(self, profile: Optional[UserProfile], history: List[Message],
                      user_message: str, now: Optional[datetime] = None) -> SuperBossOutcome:
        """Greeting reply, local pricing shortcut, or the backend's delegation decision.

        Backend exceptions propagate to the caller.
        """
        message = (user_message or "").strip()

        if len(message) < MIN_PROBLEM_LENGTH or is_bare_greeting(message):
            outcome = SuperBossOutcome(
                text_response=superboss_greeting_reply(profile, message, now or datetime.now())
            )
            log_delegation_decision(None, None, source="greeting")
            return outcome

        if (self.settings.local_heuristics_enabled
                and PRICING_SPECIALIST_ID in self.registry
                and is_pricing_request(message)):
            decision = DelegationDecision(
                summary=summarize_pricing_request(message),
                involved_agent_ids=(PRICING_SPECIALIST_ID,),
            )
            log_delegation_decision(decision.summary, list(decision.involved_agent_ids), source="pricing_heuristic")
            return SuperBossOutcome(decision=decision)

        raw = await self.backend.generate_delegation_decision(profile, history, message)
        outcome = parse_delegation_output(raw, self.registry.orchestrator.id)
        log_delegation_decision(
            outcome.summary,
            list(outcome.involved_agent_ids) if outcome.decision else None,
            source="backend",
        )
        return outcome

    generate_superboss_analysis = analyze

    async def consult_specialists(self, profile: Optional[UserProfile], decision: DelegationDecision) -> Analysis:
        """Ask every resolved specialist concurrently; failures become fallback solutions"""
        agents = self.registry.resolve(decision.involved_agent_ids)
        if not agents:
            logger.info("No specialist resolved for delegation",
                        requested=list(decision.involved_agent_ids))
            return Analysis(
                problem=decision.summary,
                solutions=(SpecialistSolution(agent=self.registry.orchestrator,
                                              solution=NO_SPECIALIST_TEXT,
                                              fallback=True),),
            )

        results = await asyncio.gather(
            *[self._consult_one(agent, profile, decision.summary) for agent in agents],
            return_exceptions=True
        )

        solutions = []
        for agent, result in zip(agents, results):
            if isinstance(result, Exception):
                solutions.append(fallback_solution(agent))
            elif isinstance(result, BaseException):
                raise result
            elif not (result.text or "").strip():
                log_specialist_consultation(agent.id, 0, success=False, fallback_used=True,
                                            error_message="empty reply")
                solutions.append(fallback_solution(agent))
            else:
                solutions.append(SpecialistSolution(agent=agent, solution=result.text.strip()))

        logger.info("Specialists consulted",
                    problem=decision.summary,
                    agents=[agent.id for agent in agents],
                    fallbacks=sum(1 for s in solutions if s.fallback))
        return Analysis(problem=decision.summary, solutions=tuple(solutions))

    async def _consult_one(self, agent: Agent, profile: Optional[UserProfile], summary: str) -> ChatReply:
        start_time = datetime.utcnow()
        try:
            reply = await self.backend.generate_reply(
                agent, profile, [], delegation_message(agent, summary), delegated=True
            )
        except Exception as e:
            execution_time = int((datetime.utcnow() - start_time).total_seconds() * 1000)
            log_specialist_consultation(agent.id, execution_time, success=False,
                                        fallback_used=True, error_message=str(e))
            raise

        execution_time = int((datetime.utcnow() - start_time).total_seconds() * 1000)
        log_specialist_consultation(agent.id, execution_time, success=True)
        return reply

    async def run(self, profile: Optional[UserProfile], history: List[Message], user_message: str,
                  plan: Optional[PlanContext] = None, user_id: Optional[str] = None,
                  now: Optional[datetime] = None) -> SuperBossTurn:
        """Full SuperBoss turn: triage, quota, acknowledgement, fan-out and archive"""
        outcome = await self.analyze(profile, history, user_message, now)
        if outcome.decision is None:
            return SuperBossTurn(reply=outcome.text_response)

        if plan is not None and self.usage_tracker is not None and self.quota_policy is not None:
            await self.quota_policy.consume(self.usage_tracker, RESOURCE_SUPERBOSS, plan, user_id)

        decision = outcome.decision
        analysis = await self.consult_specialists(profile, decision)

        if self.archive is not None and user_id:
            try:
                await self.archive.save(user_id, analysis)
            except (asyncpg.PostgresError, OSError) as e:
                logger.error("Failed to archive analysis", user_id=user_id, error=str(e))

        return SuperBossTurn(
            reply=ACKNOWLEDGEMENT_TEXT.format(summary=decision.summary),
            decision=decision,
            analysis=analysis,
        )
