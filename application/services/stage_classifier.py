# application/services/stage_classifier.py
from typing import Iterable, Optional
from domain.models.conversation import ConversationStage, Sender
from shared.config import StageThresholds


def count_agent_questions(history: Optional[Iterable], persona_id: Optional[str] = None) -> int:
    """Count agent messages (of one persona, or of all) that contain a question mark"""
    count = 0
    for message in history or ():
        sender = getattr(message, "sender", None)
        if sender != Sender.AGENT:
            continue
        if persona_id is not None and getattr(message, "agent_id", None) != persona_id:
            continue
        text = getattr(message, "text", None)
        if isinstance(text, str) and "?" in text:
            count += 1
    return count


def stage_for_count(count: int, thresholds: StageThresholds = StageThresholds()) -> ConversationStage:
    if count >= thresholds.followup:
        return ConversationStage.FOLLOWUP
    if count >= thresholds.execution:
        return ConversationStage.EXECUTION
    if count >= thresholds.prioritization:
        return ConversationStage.PRIORITIZATION
    return ConversationStage.DIAGNOSIS


def classify_stage(history: Optional[Iterable], persona_id: Optional[str] = None,
                   thresholds: StageThresholds = StageThresholds()) -> ConversationStage:
    """Derive the dialogue stage from how many questions the persona has already asked.

    Never raises: anything that cannot be iterated falls back to diagnosis.
    """
    try:
        count = count_agent_questions(history, persona_id)
    except TypeError:
        return ConversationStage.DIAGNOSIS
    return stage_for_count(count, thresholds)
