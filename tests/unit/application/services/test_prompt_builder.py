# tests/unit/application/services/test_prompt_builder.py
from application.services.prompt_builder import (
    BASE_TONE,
    agent_directory,
    chart_image_prompt,
    delegation_message,
    persona_system_prompt,
    superboss_system_prompt,
    templates_for
)
from domain.persona_registry import DEFAULT_REGISTRY

class TestPersonaPrompt:
    def test_prompt_has_instruction_tone_and_profile(self, profile):
        agent = DEFAULT_REGISTRY.get("fin_fluxo_caixa")

        prompt = persona_system_prompt(agent, profile, "Como organizo meu caixa?")

        assert prompt.startswith(agent.instruction)
        assert BASE_TONE[1] in prompt
        assert "Destaque clareza numérica" in prompt
        assert "- Nome da Empresa: Padaria Aurora" in prompt

    def test_templates_follow_message_keywords(self):
        agent = DEFAULT_REGISTRY.get("fin_custos")

        names = [t.name for t in templates_for(agent, "Preciso de uma projeção de fluxo de caixa")]

        assert names == ["Fluxo de Caixa Semanal"]

    def test_templates_match_without_accents(self):
        agent = DEFAULT_REGISTRY.get("fin_custos")

        assert templates_for(agent, "qual preco e margem usar?")

    def test_no_templates_for_unrelated_message(self, profile):
        agent = DEFAULT_REGISTRY.get("fin_custos")

        assert templates_for(agent, "oi") == []
        assert "Modelo sugerido" not in persona_system_prompt(agent, profile, "oi")

    def test_missing_profile_renders_empty_context(self):
        prompt = persona_system_prompt(DEFAULT_REGISTRY.get("ven_crm"), None)

        assert "Contexto do Usuário e da Empresa:" in prompt

class TestSuperBossPrompt:
    def test_directory_lists_every_specialist(self):
        directory = agent_directory(DEFAULT_REGISTRY)

        for agent in DEFAULT_REGISTRY.specialists():
            assert f"(id: {agent.id})" in directory
        assert "(id: super_boss)" not in directory

    def test_system_prompt(self, profile):
        prompt = superboss_system_prompt(DEFAULT_REGISTRY, profile)

        assert prompt.startswith(DEFAULT_REGISTRY.orchestrator.instruction)
        assert '"involved_agents"' in prompt
        assert "Bolos artesanais" in prompt

class TestDelegationPrompts:
    def test_delegation_message(self):
        agent = DEFAULT_REGISTRY.get("mkt_funil")

        message = delegation_message(agent, "Vendas caindo")

        assert '"Vendas caindo"' in message
        assert agent.specialty in message

    def test_chart_image_prompt(self):
        prompt = chart_image_prompt("bar", "Vendas", ["Jan", "Fev"], [10, 20])

        assert "'bar'" in prompt
        assert "[Jan, Fev]" in prompt
        assert "[10, 20]" in prompt
