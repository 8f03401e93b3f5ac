"""Closed tool registry and the dispatch boundary."""

from __future__ import annotations

from datetime import datetime
from types import MappingProxyType
from typing import Any, Callable, Mapping

from pydantic import ValidationError

from eduassist.ai.tools.analysis import AcademicAnalysisTool
from eduassist.ai.tools.base import Tool, ToolResult
from eduassist.ai.tools.feedback import TeacherFeedbackTool
from eduassist.ai.tools.grades import DetailedGradesTool
from eduassist.ai.tools.trends import ProgressTrendsTool
from eduassist.ai.tools.violations import ViolationHistoryTool
from eduassist.core.types import Actor, ToolName
from eduassist.errors import UnknownToolError
from eduassist.log import get_logger
from eduassist.storage.models import utcnow
from eduassist.storage.records import RecordStore

logger = get_logger(__name__)

TOOL_TABLE: Mapping[ToolName, type[Tool]] = MappingProxyType(
    {
        ToolName.DETAILED_GRADES: DetailedGradesTool,
        ToolName.VIOLATION_HISTORY: ViolationHistoryTool,
        ToolName.ACADEMIC_ANALYSIS: AcademicAnalysisTool,
        ToolName.PROGRESS_TRENDS: ProgressTrendsTool,
        ToolName.TEACHER_FEEDBACK: TeacherFeedbackTool,
    }
)


def _describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ())) or "arguments"
        parts.append(f"{location}: {err.get('msg', 'invalid')}")
    return "invalid arguments (" + "; ".join(parts) + ")"


class ToolRegistry:
    """Every tool the model may call, fixed at construction."""

    def __init__(self, records: RecordStore, clock: Callable[[], datetime] = utcnow):
        self._tools: dict[ToolName, Tool] = {
            name: tool_cls(records, clock=clock) for name, tool_cls in TOOL_TABLE.items()
        }

    def get(self, name: ToolName) -> Tool:
        return self._tools[name]

    def all_tools(self) -> list[Tool]:
        return list(self._tools.values())

    def declarations(self) -> list[dict[str, Any]]:
        return [tool.declaration() for tool in self._tools.values()]

    async def dispatch(self, name: str, args: Mapping[str, Any] | None, actor: Actor) -> ToolResult:
        """Run one tool call. Never raises: every failure becomes an error ToolResult."""
        try:
            tool = self._tools[ToolName.parse(name)]
        except UnknownToolError as e:
            logger.warning("tool_unknown", tool=name)
            return ToolResult.failure(name, f"{name}: {e.message}")

        try:
            parsed = tool.args_model.model_validate(dict(args or {}))
        except ValidationError as e:
            logger.warning("tool_invalid_arguments", tool=name, errors=e.error_count())
            return ToolResult.failure(name, f"{name}: {_describe_validation_error(e)}")

        logger.info("tool_dispatched", tool=name)
        try:
            result = await tool.run(parsed, actor)
        except Exception as e:
            logger.error("tool_failed", tool=name, error=str(e))
            return ToolResult.failure(name, f"{name}: {e}")

        if not result.ok:
            logger.info("tool_returned_error", tool=name, error=result.error)
        return result
