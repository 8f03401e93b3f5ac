"""Teacher feedback tool."""

from __future__ import annotations

from collections import defaultdict
from typing import Any

from eduassist.ai.tools.analysis import feedback_comment, rating_distribution
from eduassist.ai.tools.base import Tool, average, student_name_property
from eduassist.ai.tools.dto import (
    Recommendations,
    SubjectFeedbackSummary,
    TeacherFeedbackArgs,
    TeacherFeedbackResult,
)
from eduassist.core.types import ToolName
from eduassist.storage.models import FeedbackRow, StudentRef

# feedback type -> (window in days, row limit)
FEEDBACK_WINDOWS = {"recent": (30, 10), "summary": (90, None), "recommendations": (60, None)}


def summarize_by_subject(rows: list[FeedbackRow]) -> list[SubjectFeedbackSummary]:
    by_subject: dict[str, list[FeedbackRow]] = defaultdict(list)
    for row in rows:
        by_subject[row.subject_name].append(row)
    return [
        SubjectFeedbackSummary(
            subject=subject,
            teacher=items[0].teacher_name,
            average_rating=average([float(f.rating) for f in items]),
            total_feedback=len(items),
            rating_distribution=rating_distribution(items),
            recent_comments=[feedback_comment(f) for f in items[:3]],
        )
        for subject, items in by_subject.items()
    ]


class TeacherFeedbackTool(Tool):
    args_model = TeacherFeedbackArgs

    @property
    def name(self) -> ToolName:
        return ToolName.TEACHER_FEEDBACK

    @property
    def description(self) -> str:
        return "Get detailed teacher feedback and recommendations for a student"

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "studentName": student_name_property("Name of the student to get feedback for"),
                "subjectName": {
                    "type": "string",
                    "description": "Specific subject (optional) - if not provided, returns all subjects",
                },
                "feedbackType": {
                    "type": "string",
                    "enum": list(FEEDBACK_WINDOWS),
                    "description": 'Type of feedback: "recent", "summary", "recommendations"',
                },
            },
            "required": ["studentName"],
        }

    async def fetch(self, student: StudentRef, args: TeacherFeedbackArgs) -> TeacherFeedbackResult:
        days, limit = FEEDBACK_WINDOWS[args.feedback_type]
        rows = await self._records.feedback(
            student.student_id, since=self.since(days), subject=args.subject_name, limit=limit
        )
        result = TeacherFeedbackResult(
            student_name=student.full_name,
            subject_filter=args.subject_name or "all subjects",
            feedback_type=args.feedback_type,
            total_feedback=len(rows),
        )

        match args.feedback_type:
            case "recent":
                result.recent_feedback = [feedback_comment(row) for row in rows]
            case "summary":
                result.subject_summaries = summarize_by_subject(rows)
            case "recommendations":
                weak = [feedback_comment(row) for row in rows if row.rating <= 3]
                strong = [feedback_comment(row) for row in rows if row.rating >= 4]
                result.recommendations = Recommendations(
                    areas_for_improvement=weak,
                    strengths=strong,
                    needs_attention=len(weak),
                    performing_well=len(strong),
                    average_rating=average([float(row.rating) for row in rows]),
                )
        return result
