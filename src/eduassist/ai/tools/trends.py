"""Progress trend tool: per-period grade and behaviour series with a direction."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from eduassist.ai.tools.base import Tool, average, student_name_property
from eduassist.ai.tools.dto import (
    PeriodBehavior,
    PeriodGrades,
    ProgressTrendsArgs,
    ProgressTrendsResult,
    TrendDirection,
    TrendPeriodEntry,
)
from eduassist.ai.tools.violations import severity_breakdown
from eduassist.core.types import ToolName
from eduassist.storage.models import StudentRef

# period -> (months per bucket, number of buckets)
PERIOD_LAYOUT = {"monthly": (1, 6), "quarterly": (3, 4), "semester": (6, 2)}


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def period_ranges(now: datetime, period: str) -> list[tuple[str, datetime, datetime]]:
    """Calendar-aligned (label, start, end) buckets ending with the one containing ``now``."""
    span, count = PERIOD_LAYOUT[period]
    first_month = ((now.month - 1) // span) * span + 1
    ranges = []
    for back in range(count - 1, -1, -1):
        year, month = _shift_month(now.year, first_month, -back * span)
        next_year, next_month = _shift_month(year, month, span)
        start = datetime(year, month, 1)
        end = datetime(next_year, next_month, 1) - timedelta(microseconds=1)
        if period == "monthly":
            label = f"{month:02d}/{year}"
        elif period == "quarterly":
            label = f"Q{(month - 1) // 3 + 1} {year}"
        else:
            label = f"H{(month - 1) // 6 + 1} {year}"
        ranges.append((label, start, end))
    return ranges


def direction(previous: float, latest: float, lower_is_better: bool = False) -> str:
    if latest == previous:
        return "stable"
    improving = latest < previous if lower_is_better else latest > previous
    return "improving" if improving else "declining"


class ProgressTrendsTool(Tool):
    args_model = ProgressTrendsArgs

    @property
    def name(self) -> ToolName:
        return ToolName.PROGRESS_TRENDS

    @property
    def description(self) -> str:
        return "Get progress trends and improvement patterns for a student"

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "studentName": student_name_property("Name of the student to analyze trends for"),
                "metric": {
                    "type": "string",
                    "enum": ["grades", "behavior", "attendance", "overall"],
                    "description": 'Metric to analyze: "grades", "behavior", "attendance", "overall"',
                },
                "period": {
                    "type": "string",
                    "enum": list(PERIOD_LAYOUT),
                    "description": 'Analysis period: "monthly", "quarterly", "semester"',
                },
            },
            "required": ["studentName", "metric"],
        }

    async def fetch(self, student: StudentRef, args: ProgressTrendsArgs) -> ProgressTrendsResult:
        with_grades = args.metric in ("grades", "overall")
        with_behavior = args.metric in ("behavior", "overall")
        with_attendance = args.metric in ("attendance", "overall")

        trends: list[TrendPeriodEntry] = []
        for label, start, end in period_ranges(self._clock(), args.period):
            entry = TrendPeriodEntry(period=label, start_date=start, end_date=end)
            if with_grades:
                rows = await self._records.grades(student.student_id, since=start, until=end)
                values = [row.grade for row in rows]
                entry.grades = PeriodGrades(
                    average=average(values),
                    count=len(values),
                    highest=max(values) if values else None,
                    lowest=min(values) if values else None,
                )
            if with_behavior:
                rows = await self._records.violations(student.student_id, since=start, until=end)
                entry.behavior = PeriodBehavior(
                    total_violations=len(rows), severity_breakdown=severity_breakdown(rows)
                )
            if with_attendance:
                entry.attendance = {"note": "Attendance tracking not yet implemented"}
            trends.append(entry)

        analysis: dict[str, TrendDirection] = {}
        if with_grades:
            series = [t.grades.average for t in trends if t.grades and t.grades.average is not None]
            if len(series) >= 2:
                analysis["grades"] = TrendDirection(
                    direction=direction(series[-2], series[-1]),
                    change=round(series[-1] - series[-2], 2),
                    trend=series,
                )
        if with_behavior:
            counts = [float(t.behavior.total_violations) for t in trends if t.behavior]
            if len(counts) >= 2:
                analysis["behavior"] = TrendDirection(
                    direction=direction(counts[-2], counts[-1], lower_is_better=True),
                    change=counts[-1] - counts[-2],
                    trend=counts,
                )

        return ProgressTrendsResult(
            student_name=student.full_name,
            metric=args.metric,
            period=args.period,
            trends=trends,
            analysis=analysis,
            periods_analyzed=len(trends),
        )
