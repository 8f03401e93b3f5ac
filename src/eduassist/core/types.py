"""Shared types and enumerations."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from eduassist.errors import UnknownToolError


class Role(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"


class HistoryRole(StrEnum):
    """Roles used in the turn request history (model turns are called "model")."""

    USER = "user"
    MODEL = "model"


class FrameType(StrEnum):
    TEXT = "text"
    FUNCTION_RESULTS = "function_results"
    COMPLETE = "complete"
    ERROR = "error"


class ToolName(StrEnum):
    """Closed set of tools the model may call."""

    DETAILED_GRADES = "getDetailedGrades"
    VIOLATION_HISTORY = "getViolationHistory"
    ACADEMIC_ANALYSIS = "getAcademicAnalysis"
    PROGRESS_TRENDS = "getProgressTrends"
    TEACHER_FEEDBACK = "getTeacherFeedback"

    @classmethod
    def parse(cls, name: str) -> ToolName:
        try:
            return cls(name)
        except ValueError:
            raise UnknownToolError(name) from None


@dataclass(frozen=True, slots=True)
class Actor:
    """Authenticated caller of a turn."""

    actor_id: str
    role: str


@dataclass(frozen=True, slots=True)
class ContextUsed:
    """Counts of actor-owned data that backed one answer."""

    students_count: int = 0
    feedback_count: int = 0
    grades_count: int = 0
    violations_count: int = 0

    @property
    def related_records(self) -> int:
        return self.feedback_count + self.grades_count + self.violations_count

    @property
    def is_empty(self) -> bool:
        return self.students_count == 0 and self.related_records == 0

    def to_dict(self) -> dict[str, int]:
        return {
            "studentsCount": self.students_count,
            "feedbackCount": self.feedback_count,
            "gradesCount": self.grades_count,
            "violationsCount": self.violations_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ContextUsed:
        if not data:
            return cls()
        return cls(
            students_count=int(data.get("studentsCount", 0) or 0),
            feedback_count=int(data.get("feedbackCount", 0) or 0),
            grades_count=int(data.get("gradesCount", 0) or 0),
            violations_count=int(data.get("violationsCount", 0) or 0),
        )
