"""Typed argument and result models for every tool.

Arguments arrive from the model in camelCase; results leave in camelCase so the
model sees the same vocabulary it was given in the declarations.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Timeframe = Literal["week", "month", "semester", "year"]
Severity = Literal["minor", "moderate", "serious", "severe"]
AnalysisType = Literal["overall", "subject_specific", "trend_analysis", "comparison"]
TrendMetric = Literal["grades", "behavior", "attendance", "overall"]
TrendPeriod = Literal["monthly", "quarterly", "semester"]
FeedbackType = Literal["recent", "summary", "recommendations"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ToolArgs(_CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore", str_strip_whitespace=True
    )

    student_name: str = Field(min_length=1)


class DetailedGradesArgs(ToolArgs):
    subject_name: Optional[str] = None
    timeframe: Timeframe = "month"


class ViolationHistoryArgs(ToolArgs):
    severity: Optional[Severity] = None
    timeframe: Timeframe = "month"


class AcademicAnalysisArgs(ToolArgs):
    analysis_type: AnalysisType = "overall"


class ProgressTrendsArgs(ToolArgs):
    metric: TrendMetric = "overall"
    period: TrendPeriod = "monthly"


class TeacherFeedbackArgs(ToolArgs):
    subject_name: Optional[str] = None
    feedback_type: FeedbackType = "recent"


# Results


class DataPoints(_CamelModel):
    """How many actor-owned records a tool result was built from."""

    grades: int = 0
    feedback: int = 0
    violations: int = 0


class ToolOutput(_CamelModel):
    student_name: str

    def data_points(self) -> DataPoints:
        return DataPoints()


class GradeEntry(_CamelModel):
    subject: str
    grade: float
    submission_date: datetime


class GradeStats(_CamelModel):
    total_grades: int
    average_grade: Optional[float] = None
    highest_grade: Optional[float] = None
    lowest_grade: Optional[float] = None


class DetailedGradesResult(ToolOutput):
    timeframe: str
    subject_filter: str
    grades: list[GradeEntry]
    summary: GradeStats

    def data_points(self) -> DataPoints:
        return DataPoints(grades=len(self.grades))


class ViolationEntry(_CamelModel):
    type: str
    category: Optional[str] = None
    severity: str
    description: Optional[str] = None
    recorded_at: datetime
    recorded_by: Optional[str] = None


class ViolationStats(_CamelModel):
    total_violations: int
    severity_breakdown: dict[str, int]


class ViolationHistoryResult(ToolOutput):
    timeframe: str
    severity_filter: str
    violations: list[ViolationEntry]
    summary: ViolationStats

    def data_points(self) -> DataPoints:
        return DataPoints(violations=len(self.violations))


class SubjectAverage(_CamelModel):
    subject: str
    average: float
    count: int
    highest: float
    lowest: float


class FeedbackComment(_CamelModel):
    subject: str
    teacher: str
    rating: int
    comment: Optional[str] = None
    week: Optional[int] = None


class AcademicPerformance(_CamelModel):
    overall_average: Optional[float] = None
    total_grades: int
    subject_breakdown: list[SubjectAverage]
    grade_distribution: dict[str, int]


class FeedbackOverview(_CamelModel):
    average_rating: Optional[float] = None
    total_feedback: int
    rating_distribution: dict[str, int]
    recent_comments: list[FeedbackComment]


class BehaviorOverview(_CamelModel):
    total_violations: int
    severity_breakdown: dict[str, int]
    recent_violations: list[ViolationEntry]


class AcademicAnalysisResult(ToolOutput):
    analysis_type: str
    period: str = "Last 3 months"
    academic_performance: AcademicPerformance
    teacher_feedback: FeedbackOverview
    behavior_analysis: BehaviorOverview
    summary: DataPoints

    def data_points(self) -> DataPoints:
        return self.summary


class PeriodGrades(_CamelModel):
    average: Optional[float] = None
    count: int = 0
    highest: Optional[float] = None
    lowest: Optional[float] = None


class PeriodBehavior(_CamelModel):
    total_violations: int = 0
    severity_breakdown: dict[str, int] = Field(default_factory=dict)


class TrendPeriodEntry(_CamelModel):
    period: str
    start_date: datetime
    end_date: datetime
    grades: Optional[PeriodGrades] = None
    behavior: Optional[PeriodBehavior] = None
    attendance: Optional[dict[str, str]] = None


class TrendDirection(_CamelModel):
    direction: Literal["improving", "declining", "stable"]
    change: float
    trend: list[float]


class ProgressTrendsResult(ToolOutput):
    metric: str
    period: str
    trends: list[TrendPeriodEntry]
    analysis: dict[str, TrendDirection]
    periods_analyzed: int

    def data_points(self) -> DataPoints:
        return DataPoints(
            grades=sum(t.grades.count for t in self.trends if t.grades),
            violations=sum(t.behavior.total_violations for t in self.trends if t.behavior),
        )


class SubjectFeedbackSummary(_CamelModel):
    subject: str
    teacher: str
    average_rating: float
    total_feedback: int
    rating_distribution: dict[str, int]
    recent_comments: list[FeedbackComment]


class Recommendations(_CamelModel):
    areas_for_improvement: list[FeedbackComment]
    strengths: list[FeedbackComment]
    needs_attention: int
    performing_well: int
    average_rating: Optional[float] = None


class TeacherFeedbackResult(ToolOutput):
    subject_filter: str
    feedback_type: str
    total_feedback: int
    recent_feedback: Optional[list[FeedbackComment]] = None
    subject_summaries: Optional[list[SubjectFeedbackSummary]] = None
    recommendations: Optional[Recommendations] = None

    def data_points(self) -> DataPoints:
        return DataPoints(feedback=self.total_feedback)
