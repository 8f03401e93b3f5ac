"""Detailed grade lookup tool."""

from __future__ import annotations

from typing import Any

from eduassist.ai.tools.base import TIMEFRAME_DAYS, Tool, average, student_name_property
from eduassist.ai.tools.dto import DetailedGradesArgs, DetailedGradesResult, GradeEntry, GradeStats
from eduassist.core.types import ToolName
from eduassist.storage.models import StudentRef


class DetailedGradesTool(Tool):
    """Grades of one child over a timeframe, optionally for one subject."""

    args_model = DetailedGradesArgs

    @property
    def name(self) -> ToolName:
        return ToolName.DETAILED_GRADES

    @property
    def description(self) -> str:
        return "Get detailed grade information for a specific student and subject"

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "studentName": student_name_property("Name of the student to get grades for"),
                "subjectName": {
                    "type": "string",
                    "description": "Subject name (optional) - if not provided, returns all subjects",
                },
                "timeframe": {
                    "type": "string",
                    "enum": list(TIMEFRAME_DAYS),
                    "description": 'Time period: "week", "month", "semester", or "year"',
                },
            },
            "required": ["studentName"],
        }

    async def fetch(self, student: StudentRef, args: DetailedGradesArgs) -> DetailedGradesResult:
        rows = await self._records.grades(
            student.student_id,
            since=self.since(TIMEFRAME_DAYS[args.timeframe]),
            subject=args.subject_name,
        )
        values = [row.grade for row in rows]
        return DetailedGradesResult(
            student_name=student.full_name,
            timeframe=args.timeframe,
            subject_filter=args.subject_name or "all subjects",
            grades=[
                GradeEntry(subject=row.subject_name, grade=row.grade, submission_date=row.submission_date)
                for row in rows
            ],
            summary=GradeStats(
                total_grades=len(values),
                average_grade=average(values),
                highest_grade=max(values) if values else None,
                lowest_grade=min(values) if values else None,
            ),
        )
