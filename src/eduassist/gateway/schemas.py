"""Request bodies accepted by the gateway."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class HistoryItem(BaseModel):
    role: Literal["user", "model"]
    content: str


class TurnRequest(BaseModel):
    message: str = Field(min_length=1)
    history: list[HistoryItem] = Field(default_factory=list)

    def history_pairs(self) -> list[tuple[str, str]]:
        return [(item.role, item.content) for item in self.history]


class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateConversationRequest(_Body):
    id: Optional[str] = None
    title: Optional[str] = None


class SaveMessageRequest(_Body):
    id: str = Field(min_length=1)
    role: Literal["user", "assistant"]
    content: str = Field(min_length=1)
    context_used: Optional[dict[str, Any]] = None
    function_calls: int = Field(default=0, ge=0)
    prompt_strength: float = Field(default=0.0, ge=0.0, le=1.0)
    created_at: Optional[datetime] = None


class FeedbackRequest(_Body):
    is_helpful: bool
    rating: Literal["excellent", "good", "average", "poor", "very_poor"]
    comment: Optional[str] = None
    user_question: str = Field(min_length=1)
    ai_response: str = Field(min_length=1)
