"""Convert turn history and tool round-trips to Anthropic API message format."""

from __future__ import annotations

import json
from typing import Any, Iterable, Sequence

from eduassist.ai.client import ToolCallRequest
from eduassist.ai.tools.base import ToolResult
from eduassist.core.types import HistoryRole


def build_messages(history: Iterable[tuple[str, str]], message: str) -> list[dict[str, Any]]:
    """Build API messages from ``(role, content)`` history plus the new user message.

    History roles are ``user``/``model``. Leading model turns (e.g. a greeting)
    are dropped because the API conversation must open with a user turn, and
    consecutive turns of the same role are merged.
    """
    messages: list[dict[str, Any]] = []
    for role, content in [*history, (HistoryRole.USER, message)]:
        if not content:
            continue
        api_role = "assistant" if role == HistoryRole.MODEL else "user"
        if not messages and api_role == "assistant":
            continue
        if messages and messages[-1]["role"] == api_role:
            messages[-1]["content"] += "\n\n" + content
        else:
            messages.append({"role": api_role, "content": content})
    return messages


def tool_round_messages(
    text: str,
    calls: Sequence[ToolCallRequest],
    results: Sequence[ToolResult],
) -> list[dict[str, Any]]:
    """The assistant tool_use turn and the user tool_result turn that answers it."""
    assistant_content: list[dict[str, Any]] = []
    if text:
        assistant_content.append({"type": "text", "text": text})
    for call in calls:
        assistant_content.append(
            {"type": "tool_use", "id": call.id, "name": call.name, "input": call.args}
        )

    tool_result_content: list[dict[str, Any]] = []
    for call, result in zip(calls, results):
        block: dict[str, Any] = {
            "type": "tool_result",
            "tool_use_id": call.id,
            "content": json.dumps(result.result, ensure_ascii=False),
        }
        if not result.ok:
            block["is_error"] = True
        tool_result_content.append(block)

    return [
        {"role": "assistant", "content": assistant_content},
        {"role": "user", "content": tool_result_content},
    ]
