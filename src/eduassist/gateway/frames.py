"""Wire frames of the chat push-stream and their line-delimited encoding.

Each frame travels as one server-sent-events record::

    data: {"type": "text", "data": "xin"}\\n\\n

The ``data`` member carries the type-specific payload.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Union

from eduassist.core.types import ContextUsed, FrameType

DATA_PREFIX = "data: "
RECORD_TERMINATOR = "\n\n"

TURN_FAILED_MESSAGE = "An error occurred while processing your request"


@dataclass(frozen=True)
class TextFrame:
    text: str
    type: FrameType = field(default=FrameType.TEXT, init=False)

    def payload(self) -> str:
        return self.text


@dataclass(frozen=True)
class FunctionResultsFrame:
    results: list[dict[str, Any]]  # [{name, result}]
    type: FrameType = field(default=FrameType.FUNCTION_RESULTS, init=False)

    def payload(self) -> list[dict[str, Any]]:
        return self.results


@dataclass(frozen=True)
class CompleteFrame:
    context_used: ContextUsed
    function_calls: int
    type: FrameType = field(default=FrameType.COMPLETE, init=False)

    def payload(self) -> dict[str, Any]:
        return {"contextUsed": self.context_used.to_dict(), "functionCalls": self.function_calls}


@dataclass(frozen=True)
class ErrorFrame:
    message: str = TURN_FAILED_MESSAGE
    type: FrameType = field(default=FrameType.ERROR, init=False)

    def payload(self) -> dict[str, str]:
        return {"message": self.message}


Frame = Union[TextFrame, FunctionResultsFrame, CompleteFrame, ErrorFrame]


class FrameFormatError(ValueError):
    """A record was complete but did not describe a valid frame."""


def encode_frame(frame: Frame) -> bytes:
    """Serialize a frame to one self-contained wire record."""
    body = json.dumps({"type": str(frame.type), "data": frame.payload()}, ensure_ascii=False)
    return f"{DATA_PREFIX}{body}{RECORD_TERMINATOR}".encode("utf-8")


def frame_from_dict(obj: Any) -> Frame:
    """Build a frame from a decoded ``{"type", "data"}`` object."""
    if not isinstance(obj, dict):
        raise FrameFormatError(f"frame must be an object, got {type(obj).__name__}")
    try:
        frame_type = FrameType(obj.get("type"))
    except ValueError:
        raise FrameFormatError(f"unknown frame type: {obj.get('type')!r}") from None
    data = obj.get("data")

    match frame_type:
        case FrameType.TEXT:
            if not isinstance(data, str):
                raise FrameFormatError("text frame payload must be a string")
            return TextFrame(data)
        case FrameType.FUNCTION_RESULTS:
            if not isinstance(data, list):
                raise FrameFormatError("function_results payload must be an array")
            return FunctionResultsFrame(data)
        case FrameType.COMPLETE:
            data = data if isinstance(data, dict) else {}
            return CompleteFrame(
                context_used=ContextUsed.from_dict(data.get("contextUsed")),
                function_calls=int(data.get("functionCalls") or 0),
            )
        case FrameType.ERROR:
            message = data.get("message") if isinstance(data, dict) else None
            return ErrorFrame(message or "Unknown error")


def decode_record(line: str) -> Frame | None:
    """Decode one complete ``data:`` line. Non-data lines yield ``None``."""
    if not line.startswith("data:"):
        return None
    body = line[5:].lstrip(" ")
    try:
        obj = json.loads(body)
    except json.JSONDecodeError as e:
        raise FrameFormatError(f"invalid JSON in frame: {e}") from e
    return frame_from_dict(obj)
