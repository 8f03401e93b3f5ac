"""
Shared fixtures and fakes for the eduassist test suite.

Everything runs against an in-memory SQLite database seeded with a small
school: two parents, three students, and a handful of grades, teacher
feedback and violations dated relative to "now". The model backend is
replaced by ScriptedAIClient, which replays one scripted list of events per
stream() call.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Any, Optional

import pytest

from eduassist.ai.client import AIClient
from eduassist.ai.tools.registry import ToolRegistry
from eduassist.config import ActorGrant, AppConfig, AuthConfig, StorageConfig
from eduassist.core.types import Actor
from eduassist.errors import DuplicateRecordError, PersistenceError
from eduassist.storage.database import Database
from eduassist.storage.models import (
    ConversationRecord,
    FeedbackRecord,
    MessageRecord,
    utcnow,
)
from eduassist.storage.records import SqliteRecordStore
from eduassist.storage.store import ConversationStore

PARENT = Actor(actor_id="parent-1", role="parent")
OTHER_PARENT = Actor(actor_id="parent-2", role="parent")

PARENT_TOKEN = "tok-parent"
OTHER_PARENT_TOKEN = "tok-parent-2"
TEACHER_TOKEN = "tok-teacher"
ORPHAN_TOKEN = "tok-orphan"


# ---------------------------------------------------------------------------
# School records
# ---------------------------------------------------------------------------


async def seed_school(db: Database) -> None:
    """Insert the fixture school. Dates are relative to the current UTC time."""
    now = utcnow()

    def ago(days: int) -> str:
        return (now - timedelta(days=days)).isoformat()

    conn = db.conn
    await conn.executemany(
        "INSERT INTO students (id, full_name, student_code) VALUES (?, ?, ?)",
        [
            ("s1", "Nguyễn Văn An", "HS001"),
            ("s2", "Trần Thị Bình", "HS002"),
            ("s3", "Lê Văn Cường", "HS003"),
        ],
    )
    await conn.executemany(
        "INSERT INTO parent_student_relationships (parent_id, student_id) VALUES (?, ?)",
        [("parent-1", "s1"), ("parent-1", "s2"), ("parent-2", "s3")],
    )
    await conn.executemany(
        """INSERT INTO submission_grades
           (student_id, subject_name, subject_name_en, grade, submission_date)
           VALUES (?, ?, ?, ?, ?)""",
        [
            ("s1", "Toán", "Math", 8.5, ago(5)),
            ("s1", "Ngữ văn", "Literature", 7.0, ago(10)),
            ("s1", "Toán", "Math", 9.0, ago(40)),
            ("s3", "Toán", "Math", 4.0, ago(3)),
        ],
    )
    await conn.executemany(
        """INSERT INTO teacher_feedback
           (student_id, subject_name, teacher_name, rating, comment, ai_summary, week_number, created_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        [
            ("s1", "Toán", "Cô Hoa", 5, "Tiến bộ rất tốt", None, 20, ago(3)),
            ("s1", "Ngữ văn", "Thầy Minh", 3, None, "Cần luyện viết thêm", 18, ago(20)),
        ],
    )
    await conn.executemany(
        """INSERT INTO student_violations
           (student_id, severity, description, violation_type, category, recorded_by, recorded_at)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        [
            ("s1", "minor", "Đi học muộn 10 phút", "Đi muộn", "attendance", "Cô Hoa", ago(7)),
            ("s3", "serious", "Đánh nhau", "Bạo lực", "behavior", "Thầy Minh", ago(2)),
        ],
    )
    await conn.commit()


@pytest.fixture
async def db():
    database = Database(":memory:")
    await database.initialize()
    yield database
    await database.close()


@pytest.fixture
async def seeded_db(db):
    await seed_school(db)
    return db


@pytest.fixture
def records(seeded_db):
    return SqliteRecordStore(seeded_db)


@pytest.fixture
def registry(records):
    return ToolRegistry(records)


# ---------------------------------------------------------------------------
# Model backend
# ---------------------------------------------------------------------------


class ScriptedAIClient(AIClient):
    """Replays scripted rounds of TextDelta / ToolCallRequest events.

    An Exception instance inside a round is raised at that point of the stream.
    Every call's arguments are recorded in ``calls``.
    """

    def __init__(self, *rounds: list[Any]):
        self.rounds = list(rounds)
        self.calls: list[dict[str, Any]] = []

    async def stream(
        self,
        system,
        messages,
        model,
        max_tokens=1000,
        temperature=0.7,
        tools=None,
        allow_tool_use=True,
    ):
        self.calls.append(
            {
                "system": system,
                "messages": messages,
                "model": model,
                "tools": tools,
                "allow_tool_use": allow_tool_use,
            }
        )
        script = self.rounds.pop(0) if self.rounds else []
        for event in script:
            if isinstance(event, Exception):
                raise event
            yield event


# ---------------------------------------------------------------------------
# Conversation store
# ---------------------------------------------------------------------------


class FakeStore(ConversationStore):
    """In-memory ConversationStore with knobs for failures and slow writes."""

    def __init__(self, fail_creates: int = 0, fail_saves: bool = False):
        self.fail_creates = fail_creates
        self.fail_saves = fail_saves
        self.create_attempts = 0
        self.conversations: dict[str, ConversationRecord] = {}
        self.messages: list[MessageRecord] = []
        self.feedback: list[FeedbackRecord] = []
        self.create_gate: Optional[asyncio.Event] = None
        self.save_delays: dict[str, float] = {}

    async def create_conversation(self, actor_id, title=None, conversation_id=None):
        self.create_attempts += 1
        if self.create_gate is not None:
            await self.create_gate.wait()
        if self.fail_creates > 0:
            self.fail_creates -= 1
            raise PersistenceError("store unavailable")
        record = ConversationRecord(id=conversation_id or f"c{len(self.conversations) + 1}", actor_id=actor_id)
        self.conversations[record.id] = record
        return record

    async def save_message(self, record):
        await asyncio.sleep(self.save_delays.get(record.content, 0))
        if self.fail_saves:
            raise PersistenceError("disk full")
        if any(m.id == record.id for m in self.messages):
            raise DuplicateRecordError(f"Record already exists: {record.id}")
        self.messages.append(record)
        return record

    async def get_messages(self, conversation_id):
        return [m for m in self.messages if m.conversation_id == conversation_id]

    async def save_feedback(self, record):
        self.feedback.append(record)
        return record


@pytest.fixture
def fake_store():
    return FakeStore()


# ---------------------------------------------------------------------------
# Application config
# ---------------------------------------------------------------------------


def make_config(**overrides) -> AppConfig:
    data: dict[str, Any] = {
        "storage": StorageConfig(db_path=":memory:"),
        "auth": AuthConfig(
            tokens={
                PARENT_TOKEN: ActorGrant(actor_id="parent-1"),
                OTHER_PARENT_TOKEN: ActorGrant(actor_id="parent-2"),
                TEACHER_TOKEN: ActorGrant(actor_id="teacher-1", role="teacher"),
                ORPHAN_TOKEN: ActorGrant(actor_id="parent-9"),
            }
        ),
    }
    data.update(overrides)
    return AppConfig(**data)
