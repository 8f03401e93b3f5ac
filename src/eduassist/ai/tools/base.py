"""Abstract tool interface and the result type every dispatch produces."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, ClassVar, Optional

from pydantic import BaseModel

from eduassist.ai.tools.dto import DataPoints, ToolArgs, ToolOutput
from eduassist.core.types import Actor, ToolName
from eduassist.storage.models import StudentRef, utcnow
from eduassist.storage.records import RecordStore

TIMEFRAME_DAYS = {"week": 7, "month": 30, "semester": 120, "year": 365}


@dataclass
class ToolResult:
    """Outcome of one tool call: a JSON-safe payload or an error reason, never both."""

    name: str
    payload: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    student_id: Optional[str] = None
    data_points: DataPoints = field(default_factory=DataPoints)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def result(self) -> dict[str, Any]:
        """What the model and the wire see for this call."""
        if self.error is not None:
            return {"error": self.error}
        return self.payload or {}

    def to_wire(self) -> dict[str, Any]:
        return {"name": self.name, "result": self.result}

    @classmethod
    def failure(cls, name: str, reason: str) -> ToolResult:
        return cls(name=name, error=reason)


class Tool(ABC):
    """Base class for all model-callable tools.

    Subclasses declare their argument model and implement ``fetch`` for an
    already-authorized student. Resolving the student against the actor's own
    children happens here, before any record is read.
    """

    args_model: ClassVar[type[ToolArgs]] = ToolArgs

    def __init__(self, records: RecordStore, clock: Callable[[], datetime] = utcnow) -> None:
        self._records = records
        self._clock = clock

    @property
    @abstractmethod
    def name(self) -> ToolName:
        """Tool identifier sent to the model."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        ...

    @property
    @abstractmethod
    def input_schema(self) -> dict[str, Any]:
        """JSON Schema dict describing accepted parameters."""
        ...

    @abstractmethod
    async def fetch(self, student: StudentRef, args: BaseModel) -> ToolOutput:
        """Read the records for an authorized student and build the result DTO."""
        ...

    async def run(self, args: ToolArgs, actor: Actor) -> ToolResult:
        student = await self._resolve_student(actor.actor_id, args.student_name)
        if student is None:
            return ToolResult.failure(
                self.name, f'Student "{args.student_name}" not found in your children list'
            )
        output = await self.fetch(student, args)
        return ToolResult(
            name=self.name,
            payload=output.model_dump(mode="json", by_alias=True, exclude_none=True),
            student_id=student.student_id,
            data_points=output.data_points(),
        )

    def declaration(self) -> dict[str, Any]:
        """Provider-neutral declaration: name, description, parameters."""
        return {
            "name": str(self.name),
            "description": self.description,
            "parameters": self.input_schema,
        }

    def since(self, days: int) -> datetime:
        return self._clock() - timedelta(days=days)

    async def _resolve_student(self, parent_id: str, name: str) -> Optional[StudentRef]:
        wanted = name.casefold()
        for student in await self._records.linked_students(parent_id):
            if wanted in student.full_name.casefold():
                return student
        return None


def student_name_property(description: str) -> dict[str, str]:
    return {"type": "string", "description": description}


def average(values: list[float]) -> Optional[float]:
    if not values:
        return None
    return round(sum(values) / len(values), 2)
