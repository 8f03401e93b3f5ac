"""Turn orchestration: one user message through tool calls to a streamed answer."""

from __future__ import annotations

import asyncio
import uuid
from typing import AsyncIterator, Iterable, Sequence

from eduassist.ai.client import AIClient, TextDelta, ToolCallRequest
from eduassist.ai.conversation import build_messages, tool_round_messages
from eduassist.ai.prompts import build_system_prompt
from eduassist.ai.tools.base import ToolResult
from eduassist.ai.tools.registry import ToolRegistry
from eduassist.config import AIConfig
from eduassist.core.types import Actor, ContextUsed
from eduassist.gateway.frames import (
    CompleteFrame,
    ErrorFrame,
    Frame,
    FunctionResultsFrame,
    TextFrame,
)
from eduassist.log import bind_turn, clear_turn, get_logger
from eduassist.storage.records import RecordStore

logger = get_logger(__name__)


def summarize_context(results: Sequence[ToolResult]) -> ContextUsed:
    """Aggregate what the successful tool results were built from."""
    students = {r.student_id for r in results if r.ok and r.student_id}
    ok = [r for r in results if r.ok]
    return ContextUsed(
        students_count=len(students),
        feedback_count=sum(r.data_points.feedback for r in ok),
        grades_count=sum(r.data_points.grades for r in ok),
        violations_count=sum(r.data_points.violations for r in ok),
    )


class TurnOrchestrator:
    """Drives one turn and yields the frames to push to the client.

    The first model call may stream text and request tools. Requested tools run
    concurrently, their results go out as one ``function_results`` frame, and a
    second call (tool use disabled) streams the synthesis. Every turn ends with
    exactly one ``complete`` or ``error`` frame.
    """

    def __init__(
        self,
        ai_client: AIClient,
        tool_registry: ToolRegistry,
        records: RecordStore,
        ai_config: AIConfig,
    ):
        self._ai_client = ai_client
        self._tools = tool_registry
        self._records = records
        self._config = ai_config

    async def run_turn(
        self,
        message: str,
        history: Iterable[tuple[str, str]],
        actor: Actor,
    ) -> AsyncIterator[Frame]:
        turn_id = uuid.uuid4().hex[:12]
        bind_turn(turn_id, actor.actor_id)
        logger.info("turn_started", message_length=len(message))
        try:
            async for frame in self._run(message, history, actor):
                yield frame
        except Exception as e:
            logger.error("turn_failed", error=str(e), error_type=type(e).__name__)
            yield ErrorFrame()
        finally:
            clear_turn()

    async def _run(
        self,
        message: str,
        history: Iterable[tuple[str, str]],
        actor: Actor,
    ) -> AsyncIterator[Frame]:
        students = await self._records.linked_students(actor.actor_id)
        system = build_system_prompt(students, self._config.system_prompt)
        messages = build_messages(history, message)
        declarations = self._tools.declarations()

        text_parts: list[str] = []
        calls: list[ToolCallRequest] = []
        async for event in self._ai_client.stream(
            system=system,
            messages=messages,
            model=self._config.model,
            max_tokens=self._config.max_tokens,
            temperature=self._config.temperature,
            tools=declarations,
        ):
            if isinstance(event, TextDelta):
                text_parts.append(event.text)
                yield TextFrame(event.text)
            else:
                calls.append(event)

        if not calls:
            logger.info("turn_completed", function_calls=0)
            yield CompleteFrame(context_used=ContextUsed(), function_calls=0)
            return

        results = await self._execute(calls, actor)
        yield FunctionResultsFrame([r.to_wire() for r in results])

        followup = messages + tool_round_messages("".join(text_parts), calls, results)
        async for event in self._ai_client.stream(
            system=system,
            messages=followup,
            model=self._config.model,
            max_tokens=self._config.max_tokens,
            temperature=self._config.temperature,
            tools=declarations,
            allow_tool_use=False,
        ):
            if isinstance(event, TextDelta):
                yield TextFrame(event.text)
            else:
                logger.warning("synthesis_tool_call_ignored", tool=event.name)

        context_used = summarize_context(results)
        logger.info("turn_completed", function_calls=len(results), **context_used.to_dict())
        yield CompleteFrame(context_used=context_used, function_calls=len(results))

    async def _execute(self, calls: list[ToolCallRequest], actor: Actor) -> list[ToolResult]:
        """Run every requested tool concurrently; results keep request order."""
        logger.info("tools_requested", tools=[c.name for c in calls])
        return list(
            await asyncio.gather(*(self._tools.dispatch(c.name, c.args, actor) for c in calls))
        )
