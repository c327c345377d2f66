# infrastructure/generation/parsing.py
import json
import re
from typing import Any, List, Optional, Tuple
from domain.models.analysis import ChartSpec, DelegationDecision, SuperBossOutcome
from domain.persona_registry import ORCHESTRATOR_ID
from shared.logging import logger

CLARIFYING_QUESTION = "Pode me contar um pouco mais sobre o desafio que você quer resolver?"

CHART_TYPES = ("bar", "line", "pie")

_FENCE_PATTERN = re.compile(r"^```[a-zA-Z]*\s*\n?(?P<body>.*?)\n?```$", re.DOTALL)


def strip_code_fence(text: Optional[str]) -> str:
    """Remove a surrounding markdown fence (```json ... ``` or ``` ... ```)"""
    stripped = (text or "").strip()
    match = _FENCE_PATTERN.match(stripped)
    return match.group("body").strip() if match else stripped


def _load_json(text: str) -> Any:
    try:
        return json.loads(strip_code_fence(text))
    except ValueError:
        return None


def _dedupe(ids: List[str], excluded: str) -> Tuple[str, ...]:
    seen = []
    for agent_id in ids:
        if agent_id != excluded and agent_id not in seen:
            seen.append(agent_id)
    return tuple(seen)


def parse_delegation_output(raw: Optional[str], orchestrator_id: str = ORCHESTRATOR_ID) -> SuperBossOutcome:
    """Turn raw orchestrator output into a decision, degrading to a text reply"""
    text = (raw or "").strip()
    if not text:
        return SuperBossOutcome(text_response=CLARIFYING_QUESTION)

    payload = _load_json(text)
    if not isinstance(payload, dict):
        return SuperBossOutcome(text_response=text)

    summary = payload.get("summary")
    agents = payload.get("involved_agents")
    if not isinstance(summary, str) or not summary.strip() or not isinstance(agents, list):
        logger.info("Orchestrator JSON without a usable decision", keys=sorted(payload.keys()))
        return SuperBossOutcome(text_response=text)

    ids = [agent_id.strip() for agent_id in agents if isinstance(agent_id, str) and agent_id.strip()]
    return SuperBossOutcome(
        decision=DelegationDecision(summary=summary.strip(), involved_agent_ids=_dedupe(ids, orchestrator_id))
    )


def parse_chart_payload(raw: Optional[str]) -> Optional[Tuple[str, ChartSpec]]:
    """Analysis text and chart of a BI reply, or None when it is plain text"""
    payload = _load_json(raw or "")
    if not isinstance(payload, dict):
        return None

    analysis = payload.get("analysis")
    chart = payload.get("chartData")
    if not isinstance(analysis, str) or not isinstance(chart, dict):
        return None

    labels = chart.get("labels")
    values = chart.get("values")
    chart_type = str(chart.get("type", "bar")).lower()
    if chart_type not in CHART_TYPES or not isinstance(labels, list) or not isinstance(values, list):
        return None
    if len(labels) != len(values):
        return None
    try:
        numbers = tuple(float(value) for value in values)
    except (TypeError, ValueError):
        return None

    spec = ChartSpec(
        type=chart_type,
        title=str(chart.get("title") or ""),
        labels=tuple(str(label) for label in labels),
        values=numbers,
    )
    return analysis, spec
