"""Academic performance analysis tool: grades, teacher feedback and behaviour over 3 months."""

from __future__ import annotations

import asyncio
from collections import Counter, defaultdict
from typing import Any

from eduassist.ai.tools.base import Tool, average, student_name_property
from eduassist.ai.tools.dto import (
    AcademicAnalysisArgs,
    AcademicAnalysisResult,
    AcademicPerformance,
    BehaviorOverview,
    DataPoints,
    FeedbackComment,
    FeedbackOverview,
    SubjectAverage,
)
from eduassist.ai.tools.violations import severity_breakdown, violation_entry
from eduassist.core.types import ToolName
from eduassist.storage.models import FeedbackRow, GradeRow, StudentRef

ANALYSIS_WINDOW_DAYS = 90


def grade_band(grade: float) -> str:
    if grade >= 8:
        return "excellent"
    if grade >= 6.5:
        return "good"
    if grade >= 5:
        return "average"
    return "needs_improvement"


def feedback_comment(row: FeedbackRow) -> FeedbackComment:
    return FeedbackComment(
        subject=row.subject_name,
        teacher=row.teacher_name,
        rating=row.rating,
        comment=row.text,
        week=row.week_number,
    )


def rating_distribution(rows: list[FeedbackRow]) -> dict[str, int]:
    return {str(rating): count for rating, count in sorted(Counter(r.rating for r in rows).items())}


def subject_averages(rows: list[GradeRow]) -> list[SubjectAverage]:
    by_subject: dict[str, list[float]] = defaultdict(list)
    for row in rows:
        by_subject[row.subject_name].append(row.grade)
    return [
        SubjectAverage(
            subject=subject,
            average=average(values),
            count=len(values),
            highest=max(values),
            lowest=min(values),
        )
        for subject, values in by_subject.items()
    ]


class AcademicAnalysisTool(Tool):
    args_model = AcademicAnalysisArgs

    @property
    def name(self) -> ToolName:
        return ToolName.ACADEMIC_ANALYSIS

    @property
    def description(self) -> str:
        return "Get comprehensive academic performance analysis for a student"

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "studentName": student_name_property("Name of the student to analyze"),
                "analysisType": {
                    "type": "string",
                    "enum": ["overall", "subject_specific", "trend_analysis", "comparison"],
                    "description": 'Type of analysis: "overall", "subject_specific", "trend_analysis", "comparison"',
                },
            },
            "required": ["studentName", "analysisType"],
        }

    async def fetch(self, student: StudentRef, args: AcademicAnalysisArgs) -> AcademicAnalysisResult:
        since = self.since(ANALYSIS_WINDOW_DAYS)
        grades, feedback, violations = await asyncio.gather(
            self._records.grades(student.student_id, since=since),
            self._records.feedback(student.student_id, since=since),
            self._records.violations(student.student_id, since=since),
        )
        grade_values = [g.grade for g in grades]

        return AcademicAnalysisResult(
            student_name=student.full_name,
            analysis_type=args.analysis_type,
            academic_performance=AcademicPerformance(
                overall_average=average(grade_values),
                total_grades=len(grades),
                subject_breakdown=subject_averages(grades),
                grade_distribution=dict(Counter(grade_band(v) for v in grade_values)),
            ),
            teacher_feedback=FeedbackOverview(
                average_rating=average([float(f.rating) for f in feedback]),
                total_feedback=len(feedback),
                rating_distribution=rating_distribution(feedback),
                recent_comments=[feedback_comment(f) for f in feedback[:3]],
            ),
            behavior_analysis=BehaviorOverview(
                total_violations=len(violations),
                severity_breakdown=severity_breakdown(violations),
                recent_violations=[violation_entry(v) for v in violations[:3]],
            ),
            summary=DataPoints(grades=len(grades), feedback=len(feedback), violations=len(violations)),
        )
