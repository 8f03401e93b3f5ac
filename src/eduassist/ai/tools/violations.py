"""Violation history tool."""

from __future__ import annotations

from collections import Counter
from typing import Any

from eduassist.ai.tools.base import TIMEFRAME_DAYS, Tool, student_name_property
from eduassist.ai.tools.dto import (
    ViolationEntry,
    ViolationHistoryArgs,
    ViolationHistoryResult,
    ViolationStats,
)
from eduassist.core.types import ToolName
from eduassist.storage.models import StudentRef, ViolationRow

SEVERITIES = ["minor", "moderate", "serious", "severe"]


def violation_entry(row: ViolationRow) -> ViolationEntry:
    return ViolationEntry(
        type=row.violation_type,
        category=row.category,
        severity=row.severity,
        description=row.description,
        recorded_at=row.recorded_at,
        recorded_by=row.recorded_by,
    )


def severity_breakdown(rows: list[ViolationRow]) -> dict[str, int]:
    return dict(Counter(row.severity for row in rows))


class ViolationHistoryTool(Tool):
    args_model = ViolationHistoryArgs

    @property
    def name(self) -> ToolName:
        return ToolName.VIOLATION_HISTORY

    @property
    def description(self) -> str:
        return "Get violation history for a specific student"

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "studentName": student_name_property(
                    "Name of the student to get violation history for"
                ),
                "severity": {
                    "type": "string",
                    "enum": SEVERITIES,
                    "description": 'Filter by severity: "minor", "moderate", "serious", "severe" (optional)',
                },
                "timeframe": {
                    "type": "string",
                    "enum": list(TIMEFRAME_DAYS),
                    "description": 'Time period: "week", "month", "semester", or "year"',
                },
            },
            "required": ["studentName"],
        }

    async def fetch(self, student: StudentRef, args: ViolationHistoryArgs) -> ViolationHistoryResult:
        rows = await self._records.violations(
            student.student_id,
            since=self.since(TIMEFRAME_DAYS[args.timeframe]),
            severity=args.severity,
        )
        return ViolationHistoryResult(
            student_name=student.full_name,
            timeframe=args.timeframe,
            severity_filter=args.severity or "all severities",
            violations=[violation_entry(row) for row in rows],
            summary=ViolationStats(total_violations=len(rows), severity_breakdown=severity_breakdown(rows)),
        )
