"""SQLite database connection manager with schema migration."""

from __future__ import annotations

import asyncio
from pathlib import Path

import aiosqlite

from eduassist.log import get_logger

logger = get_logger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS chat_conversations (
    id              TEXT    PRIMARY KEY,
    actor_id        TEXT    NOT NULL,
    title           TEXT    NOT NULL,
    is_archived     INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now')),
    updated_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now'))
);

CREATE INDEX IF NOT EXISTS idx_conversations_actor
    ON chat_conversations(actor_id, updated_at);

CREATE TABLE IF NOT EXISTS chat_messages (
    seq             INTEGER PRIMARY KEY AUTOINCREMENT,
    id              TEXT    NOT NULL UNIQUE,
    conversation_id TEXT    NOT NULL REFERENCES chat_conversations(id) ON DELETE CASCADE,
    role            TEXT    NOT NULL CHECK(role IN ('user','assistant')),
    content         TEXT    NOT NULL,
    context_used    TEXT,
    function_calls  INTEGER NOT NULL DEFAULT 0 CHECK(function_calls >= 0),
    prompt_strength REAL    NOT NULL DEFAULT 0 CHECK(prompt_strength BETWEEN 0 AND 1),
    created_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now'))
);

CREATE INDEX IF NOT EXISTS idx_messages_conversation
    ON chat_messages(conversation_id, created_at, seq);

CREATE VIRTUAL TABLE IF NOT EXISTS chat_messages_fts USING fts5(
    content,
    content='chat_messages',
    content_rowid='seq',
    tokenize='unicode61'
);

CREATE TRIGGER IF NOT EXISTS trg_messages_fts_insert AFTER INSERT ON chat_messages BEGIN
    INSERT INTO chat_messages_fts(rowid, content) VALUES (new.seq, new.content);
END;

CREATE TRIGGER IF NOT EXISTS trg_messages_fts_delete AFTER DELETE ON chat_messages BEGIN
    INSERT INTO chat_messages_fts(chat_messages_fts, rowid, content) VALUES ('delete', old.seq, old.content);
END;

CREATE TABLE IF NOT EXISTS chat_feedback (
    id              TEXT    PRIMARY KEY,
    message_id      TEXT    NOT NULL,
    actor_id        TEXT    NOT NULL,
    is_helpful      INTEGER NOT NULL,
    rating          TEXT    NOT NULL CHECK(rating IN ('excellent','good','average','poor','very_poor')),
    comment         TEXT,
    user_question   TEXT    NOT NULL,
    ai_response     TEXT    NOT NULL,
    created_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now'))
);

CREATE INDEX IF NOT EXISTS idx_feedback_message ON chat_feedback(message_id);

-- Read-only school records consumed by tool handlers.

CREATE TABLE IF NOT EXISTS students (
    id              TEXT PRIMARY KEY,
    full_name       TEXT NOT NULL,
    student_code    TEXT
);

CREATE TABLE IF NOT EXISTS parent_student_relationships (
    parent_id       TEXT NOT NULL,
    student_id      TEXT NOT NULL REFERENCES students(id),
    PRIMARY KEY (parent_id, student_id)
);

CREATE TABLE IF NOT EXISTS submission_grades (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id      TEXT NOT NULL REFERENCES students(id),
    subject_name    TEXT NOT NULL,
    subject_name_en TEXT,
    grade           REAL NOT NULL,
    submission_date TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS teacher_feedback (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id      TEXT NOT NULL REFERENCES students(id),
    subject_name    TEXT NOT NULL,
    teacher_name    TEXT NOT NULL,
    rating          INTEGER NOT NULL,
    comment         TEXT,
    ai_summary      TEXT,
    week_number     INTEGER,
    created_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS student_violations (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id      TEXT NOT NULL REFERENCES students(id),
    severity        TEXT NOT NULL,
    description     TEXT,
    violation_type  TEXT NOT NULL,
    category        TEXT,
    recorded_by     TEXT,
    recorded_at     TEXT NOT NULL
);
"""


class Database:
    """Async SQLite database manager."""

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._conn: aiosqlite.Connection | None = None
        # Writers hold this across execute and commit or rollback; the connection is shared.
        self.write_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Open connection and run migrations."""
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row
        if self._db_path != ":memory:":
            await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA foreign_keys=ON")
        await self._conn.executescript(SCHEMA_SQL)
        await self._conn.commit()
        logger.info("database_initialized", path=self._db_path)

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._conn

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None
            logger.info("database_closed")
