"""Data models for storage layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

DEFAULT_CONVERSATION_TITLE = "Cuộc trò chuyện mới"

FEEDBACK_RATINGS = ("excellent", "good", "average", "poor", "very_poor")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class ConversationRecord:
    id: str
    actor_id: str
    title: str = DEFAULT_CONVERSATION_TITLE
    is_archived: bool = False
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    message_count: int = 0
    last_message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "actor_id": self.actor_id,
            "title": self.title,
            "is_archived": self.is_archived,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "message_count": self.message_count,
            "last_message": self.last_message,
        }


@dataclass
class FeedbackRecord:
    id: str
    message_id: str
    actor_id: str
    is_helpful: bool
    rating: str  # one of FEEDBACK_RATINGS
    user_question: str
    ai_response: str
    comment: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "message_id": self.message_id,
            "actor_id": self.actor_id,
            "is_helpful": self.is_helpful,
            "rating": self.rating,
            "comment": self.comment,
            "user_question": self.user_question,
            "ai_response": self.ai_response,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class MessageRecord:
    id: str
    conversation_id: str
    role: str  # "user" | "assistant"
    content: str
    context_used: Optional[dict[str, Any]] = None
    function_calls: int = 0
    prompt_strength: float = 0.0
    created_at: datetime = field(default_factory=utcnow)
    feedback: list[FeedbackRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "role": self.role,
            "content": self.content,
            "context_used": self.context_used,
            "function_calls": self.function_calls,
            "prompt_strength": self.prompt_strength,
            "created_at": self.created_at.isoformat(),
            "feedback": [f.to_dict() for f in self.feedback],
        }


# School records (read-only, owned by an external system)


@dataclass(frozen=True)
class StudentRef:
    student_id: str
    full_name: str
    student_code: Optional[str] = None


@dataclass(frozen=True)
class GradeRow:
    subject_name: str
    grade: float
    submission_date: datetime
    subject_name_en: Optional[str] = None


@dataclass(frozen=True)
class FeedbackRow:
    subject_name: str
    teacher_name: str
    rating: int
    created_at: datetime
    comment: Optional[str] = None
    ai_summary: Optional[str] = None
    week_number: Optional[int] = None

    @property
    def text(self) -> Optional[str]:
        return self.comment or self.ai_summary


@dataclass(frozen=True)
class ViolationRow:
    severity: str
    violation_type: str
    recorded_at: datetime
    description: Optional[str] = None
    category: Optional[str] = None
    recorded_by: Optional[str] = None
