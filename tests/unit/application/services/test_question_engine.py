# tests/unit/application/services/test_question_engine.py
import pytest
from datetime import datetime

from application.services.question_engine import (
    AREA_QUESTIONS,
    GENERIC_QUESTIONS,
    QUESTION_OVERRIDES,
    QuestionEngine,
    ensure_question_mark,
    lookup_question
)
from domain.models.conversation import ConversationStage, Sender
from domain.models.persona import Agent, AgentArea
from domain.persona_registry import DEFAULT_REGISTRY, SUPER_BOSS

MORNING = datetime(2024, 5, 10, 9, 0)
EVENING = datetime(2024, 5, 10, 20, 0)

@pytest.fixture
def engine():
    return QuestionEngine()

def custom_agent(area: AgentArea, agent_id: str = "custom_x") -> Agent:
    return Agent(id=agent_id, name="Zeca", specialty="Consultor", area=area, instruction="...")

class TestLookup:
    """Test question table precedence"""

    def test_override_wins(self, profile):
        agent = DEFAULT_REGISTRY.get("ven_crm")

        assert lookup_question(agent, ConversationStage.DIAGNOSIS, profile) == \
            QUESTION_OVERRIDES["ven_crm"][ConversationStage.DIAGNOSIS]

    def test_area_table_without_override(self):
        agent = DEFAULT_REGISTRY.get("fin_indicadores")

        assert lookup_question(agent, ConversationStage.EXECUTION) == \
            AREA_QUESTIONS[AgentArea.FINANCE][ConversationStage.EXECUTION]

    def test_strategy_challenge_template(self, profile):
        agent = custom_agent(AgentArea.STRATEGY)

        question = lookup_question(agent, ConversationStage.DIAGNOSIS, profile)

        assert question == 'Qual meta relacionada a "aumentar as vendas" quer destravar primeiro?'

    def test_challenge_only_for_strategy(self, profile):
        """Test other areas do not interpolate the onboarding challenge"""
        agent = custom_agent(AgentArea.SALES)

        question = lookup_question(agent, ConversationStage.DIAGNOSIS, profile)

        assert "aumentar as vendas" not in question
        assert question == AREA_QUESTIONS[AgentArea.SALES][ConversationStage.DIAGNOSIS]

    def test_generic_table_for_unknown_area(self, profile):
        agent = custom_agent(AgentArea.ORCHESTRATOR)

        assert lookup_question(agent, ConversationStage.FOLLOWUP, profile) == \
            GENERIC_QUESTIONS[ConversationStage.FOLLOWUP]

    def test_every_persona_has_a_question_for_every_stage(self):
        for agent in DEFAULT_REGISTRY.all():
            for stage in ConversationStage:
                assert lookup_question(agent, stage).strip()

    @pytest.mark.parametrize("raw,expected", [
        ("Qual meta?", "Qual meta?"),
        ("Liste seus custos.", "Liste seus custos?"),
        ("Qual meta", "Qual meta?"),
    ])
    def test_ensure_question_mark(self, raw, expected):
        assert ensure_question_mark(raw) == expected

class TestNextPrompt:
    """Test next question selection across stages"""

    def test_stage_advances_with_persona_questions(self, engine, profile, make_message):
        agent = DEFAULT_REGISTRY.get("mkt_anuncios")
        history = [
            make_message("Quero anunciar"),
            make_message("Qual público?", Sender.AGENT, "mkt_anuncios"),
            make_message("Mães"),
            make_message("Qual canal?", Sender.AGENT, "mkt_anuncios"),
        ]

        prompt = engine.next_prompt(agent, profile, history, "Instagram", MORNING)

        assert prompt.stage == ConversationStage.EXECUTION
        assert prompt.question == QUESTION_OVERRIDES["mkt_anuncios"][ConversationStage.EXECUTION]
        assert prompt.greeting_prefix is None
        assert prompt.text == prompt.question

    def test_every_prompt_ends_with_question_mark(self, engine, profile):
        for agent in DEFAULT_REGISTRY.specialists():
            prompt = engine.next_prompt(agent, profile, [], "Preciso de ajuda", MORNING)
            assert prompt.question.endswith("?"), agent.id

    def test_greeting_prefix_for_specialist(self, engine, profile):
        agent = DEFAULT_REGISTRY.get("pro_agil")

        prompt = engine.next_prompt(agent, profile, [], "Boa noite!", MORNING)

        assert prompt.greeting_prefix == "Boa noite, Ana!"
        assert prompt.text.startswith("Boa noite, Ana! ")

    def test_superboss_bare_greeting(self, engine, profile):
        prompt = engine.next_prompt(SUPER_BOSS, profile, [], "Bom dia", EVENING)

        assert prompt.greeting_prefix == "Bom dia, Ana!"
        assert "aumentar as vendas" in prompt.question
        assert prompt.stage == ConversationStage.DIAGNOSIS

    def test_superboss_empty_message(self, engine, empty_profile):
        prompt = engine.next_prompt(SUPER_BOSS, empty_profile, None, "", EVENING)

        assert prompt.text == "Boa noite! Qual desafio do seu negócio quer atacar primeiro?"

    def test_pricing_specialist_uses_heuristic(self, engine, profile):
        agent = DEFAULT_REGISTRY.get("fin_custos")

        prompt = engine.next_prompt(agent, profile, [], "Meu custo por unidade é R$ 10,50", MORNING)

        assert "baixo R$ 15,75, médio R$ 17,85 e alto R$ 21,00" in prompt.question
        assert not prompt.terminal

    def test_pricing_decision_is_terminal(self, engine, profile, make_message):
        agent = DEFAULT_REGISTRY.get("fin_custos")
        history = [make_message(f"Pergunta {i}?", Sender.AGENT, "fin_custos") for i in range(3)]

        prompt = engine.next_prompt(agent, profile, history, "Vamos subir o preço", MORNING)

        assert prompt.terminal
        assert prompt.stage == ConversationStage.FOLLOWUP
        assert prompt.question.startswith("Decisão registrada")

    def test_pricing_falls_back_to_tables(self, engine, profile):
        agent = DEFAULT_REGISTRY.get("fin_custos")

        prompt = engine.next_prompt(agent, profile, [], "Olá", MORNING)

        assert prompt.question.startswith("Para começar, liste 3 contas fixas")
        assert prompt.question.endswith("?")
        assert prompt.greeting_prefix == "Bom dia, Ana!"

    def test_pricing_can_be_disabled(self, profile):
        engine = QuestionEngine(pricing_enabled=False)
        agent = DEFAULT_REGISTRY.get("fin_custos")

        prompt = engine.next_prompt(agent, profile, [], "Meu custo por unidade é R$ 10,50", MORNING)

        assert "R$ 15,75" not in prompt.question

    def test_pricing_only_for_pricing_capability(self, engine, profile):
        agent = DEFAULT_REGISTRY.get("fin_fluxo_caixa")

        prompt = engine.next_prompt(agent, profile, [], "Meu custo por unidade é R$ 10,50", MORNING)

        assert "R$ 15,75" not in prompt.question
