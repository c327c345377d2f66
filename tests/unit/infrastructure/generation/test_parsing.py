# tests/unit/infrastructure/generation/test_parsing.py
import json
import pytest

from infrastructure.generation.parsing import (
    CLARIFYING_QUESTION,
    parse_chart_payload,
    parse_delegation_output,
    strip_code_fence
)

class TestStripCodeFence:
    @pytest.mark.parametrize("raw,expected", [
        ('```json\n{"a": 1}\n```', '{"a": 1}'),
        ('```\n{"a": 1}\n```', '{"a": 1}'),
        ('  {"a": 1}  ', '{"a": 1}'),
        (None, ""),
    ])
    def test_strip(self, raw, expected):
        assert strip_code_fence(raw) == expected

class TestDelegationParsing:
    """Test orchestrator output interpretation"""

    def test_valid_decision(self):
        outcome = parse_delegation_output(json.dumps({
            "summary": " Caixa negativo ",
            "involved_agents": ["fin_fluxo_caixa", "fin_orcamento"]
        }))

        assert outcome.summary == "Caixa negativo"
        assert outcome.involved_agent_ids == ("fin_fluxo_caixa", "fin_orcamento")

    def test_duplicates_and_orchestrator_removed(self):
        outcome = parse_delegation_output(json.dumps({
            "summary": "x",
            "involved_agents": ["ven_crm", "super_boss", "ven_crm", 3, " "]
        }))

        assert outcome.involved_agent_ids == ("ven_crm",)

    def test_empty_agent_list_is_still_a_decision(self):
        outcome = parse_delegation_output('{"summary": "x", "involved_agents": []}')

        assert outcome.decision is not None
        assert outcome.involved_agent_ids == ()

    @pytest.mark.parametrize("raw", [
        "Qual é o seu público?",
        '{"summary": "", "involved_agents": ["ven_crm"]}',
        '{"summary": "x", "involved_agents": "ven_crm"}',
        '{"message": "oi"}',
        '["ven_crm"]',
        '{"summary": "x", "involved_agents": [',
    ])
    def test_unusable_output_is_text(self, raw):
        outcome = parse_delegation_output(raw)

        assert outcome.decision is None
        assert outcome.text_response == raw

    @pytest.mark.parametrize("raw", [None, "", "   \n"])
    def test_empty_output_asks_for_details(self, raw):
        assert parse_delegation_output(raw).text_response == CLARIFYING_QUESTION

class TestChartParsing:
    """Test BI chart payload interpretation"""

    def test_valid_chart(self):
        raw = json.dumps({
            "analysis": "Vendas crescem",
            "chartData": {"type": "Line", "title": "Vendas", "labels": ["Jan", "Fev"], "values": [10, "12.5"]}
        })

        analysis, chart = parse_chart_payload(raw)

        assert analysis == "Vendas crescem"
        assert chart.type == "line"
        assert chart.labels == ("Jan", "Fev")
        assert chart.values == (10.0, 12.5)

    def test_fenced_chart(self):
        raw = '```json\n{"analysis": "ok", "chartData": {"labels": ["a"], "values": [1]}}\n```'

        analysis, chart = parse_chart_payload(raw)

        assert chart.type == "bar"
        assert chart.title == ""

    @pytest.mark.parametrize("raw", [
        "Texto comum sobre os dados",
        '{"analysis": "x"}',
        '{"analysis": "x", "chartData": {"type": "radar", "labels": ["a"], "values": [1]}}',
        '{"analysis": "x", "chartData": {"labels": ["a", "b"], "values": [1]}}',
        '{"analysis": "x", "chartData": {"labels": ["a"], "values": ["dez"]}}',
    ])
    def test_invalid_chart_is_plain_text(self, raw):
        assert parse_chart_payload(raw) is None
