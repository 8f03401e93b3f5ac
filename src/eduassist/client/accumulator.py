"""Per-turn state machine that folds decoded frames into one assistant message."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any, Optional

from eduassist.core.strength import prompt_strength
from eduassist.core.types import ContextUsed, Role
from eduassist.errors import TurnInProgressError
from eduassist.gateway.frames import (
    CompleteFrame,
    ErrorFrame,
    Frame,
    FunctionResultsFrame,
    TextFrame,
)
from eduassist.log import get_logger
from eduassist.storage.models import utcnow

logger = get_logger(__name__)

APOLOGY_MESSAGE = "Xin lỗi, tôi gặp sự cố kỹ thuật. Vui lòng thử lại sau ít phút."


class TurnState(StrEnum):
    IDLE = "idle"
    OPEN = "open"
    ACCUMULATING_TEXT = "accumulating_text"
    AWAITING_TOOLS = "awaiting_tools"
    CLOSED_COMPLETE = "closed_complete"
    CLOSED_ERROR = "closed_error"


_CLOSED = frozenset({TurnState.CLOSED_COMPLETE, TurnState.CLOSED_ERROR})


@dataclass
class ChatMessage:
    """A message as the chat client holds it in memory."""

    id: str
    role: Role
    content: str = ""
    created_at: datetime = field(default_factory=utcnow)
    context_used: Optional[ContextUsed] = None
    function_calls: int = 0
    prompt_strength: float = 0.0
    finalized: bool = False
    interrupted: bool = False

    def history_item(self) -> dict[str, str]:
        """The ``{role, content}`` shape the turn request history expects."""
        return {"role": "model" if self.role == Role.ASSISTANT else "user", "content": self.content}


class TurnAccumulator:
    """Folds the frames of one turn into a single assistant ChatMessage.

    ``begin`` opens the turn with the pre-assigned assistant message id. The
    first ``text`` frame materializes the message and later ones append to it,
    so its content is always the concatenation of text frames in arrival order.
    The turn closes on ``complete``, ``error`` or ``abort``; anything applied
    afterwards is ignored.
    """

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.state = TurnState.IDLE
        self.message_id: Optional[str] = None
        self.message: Optional[ChatMessage] = None
        self.tool_calls = 0
        self.tool_results: list[dict[str, Any]] = []
        self.error: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.state not in _CLOSED and self.state != TurnState.IDLE

    @property
    def is_closed(self) -> bool:
        return self.state in _CLOSED

    def begin(self, message_id: str) -> None:
        if self.state != TurnState.IDLE:
            raise TurnInProgressError(f"Turn already started (state={self.state})")
        self.message_id = message_id
        self.state = TurnState.OPEN

    def apply(self, frame: Frame) -> bool:
        """Apply one frame. Returns False when the frame was ignored."""
        if self.state == TurnState.IDLE or self.is_closed:
            logger.warning("frame_ignored", frame_type=str(frame.type), state=str(self.state))
            return False

        match frame:
            case TextFrame(text=text):
                if self.message is None:
                    self.message = ChatMessage(id=self.message_id, role=Role.ASSISTANT, content=text)
                else:
                    self.message.content += text
                self.state = TurnState.ACCUMULATING_TEXT
            case FunctionResultsFrame(results=results):
                self.tool_calls += len(results)
                self.tool_results.extend(results)
                self.state = TurnState.AWAITING_TOOLS
            case CompleteFrame(context_used=context_used, function_calls=function_calls):
                message = self._materialize()
                message.context_used = context_used
                message.function_calls = function_calls or self.tool_calls
                message.prompt_strength = prompt_strength(context_used, message.function_calls)
                message.finalized = True
                self.state = TurnState.CLOSED_COMPLETE
            case ErrorFrame(message=reason):
                self._close_with_error(reason)
        return True

    def abort(self, reason: str) -> None:
        """Close the turn locally, e.g. on idle timeout or a dropped connection."""
        if self.state == TurnState.IDLE or self.is_closed:
            return
        logger.warning("turn_aborted", reason=reason, message_id=self.message_id)
        partial = self.message is not None and bool(self.message.content)
        self._close_with_error(reason)
        if partial:
            self.message.interrupted = True

    def _materialize(self) -> ChatMessage:
        if self.message is None:
            self.message = ChatMessage(id=self.message_id, role=Role.ASSISTANT)
        return self.message

    def _close_with_error(self, reason: str) -> None:
        self.error = reason
        if self.message is None or not self.message.content:
            self._materialize().content = APOLOGY_MESSAGE
        self.state = TurnState.CLOSED_ERROR
