"""Prompt-strength heuristic shown next to assistant answers."""

from __future__ import annotations

from eduassist.core.types import ContextUsed

BASE_STRENGTH = 0.3
OWNED_ENTITY_BONUS = 0.1
RECORDS_WEIGHT = 0.4
RECORDS_SATURATION = 20
TOOLS_WEIGHT = 0.2
TOOLS_SATURATION = 3


def prompt_strength(context_used: ContextUsed | None, tool_call_count: int) -> float:
    """Score in [0, 1] for how much actor data and how many tool calls backed an answer.

    Display heuristic only; it never gates whether an answer is shown.
    """
    context = context_used or ContextUsed()
    score = BASE_STRENGTH
    if context.students_count > 0:
        score += OWNED_ENTITY_BONUS
    records = max(context.related_records, 0)
    score += RECORDS_WEIGHT * min(records / RECORDS_SATURATION, 1.0)
    calls = max(tool_call_count, 0)
    score += TOOLS_WEIGHT * min(calls / TOOLS_SATURATION, 1.0)
    return round(min(max(score, 0.0), 1.0), 4)
