"""Conversation repository with CRUD and FTS5 full-text search."""

from __future__ import annotations

import json
import uuid
from datetime import datetime
from typing import Optional

import aiosqlite

from eduassist.errors import DuplicateRecordError, PersistenceError
from eduassist.log import get_logger
from eduassist.storage.database import Database
from eduassist.storage.models import (
    DEFAULT_CONVERSATION_TITLE,
    ConversationRecord,
    FeedbackRecord,
    MessageRecord,
)
from eduassist.storage.store import ConversationStore

logger = get_logger(__name__)

_NOW_SQL = "strftime('%Y-%m-%dT%H:%M:%f','now')"


class ConversationRepository(ConversationStore):
    """CRUD + FTS5 search over chat conversations, messages and feedback."""

    def __init__(self, db: Database):
        self._db = db

    async def _write(self, *statements: tuple[str, tuple]) -> None:
        """Run statements in one transaction, translating constraint failures."""
        async with self._db.write_lock:
            try:
                for sql, params in statements:
                    await self._db.conn.execute(sql, params)
                await self._db.conn.commit()
            except aiosqlite.IntegrityError as e:
                await self._db.conn.rollback()
                if "UNIQUE" in str(e):
                    raise DuplicateRecordError(f"Record already exists: {statements[0][1][0]}") from e
                raise PersistenceError(str(e)) from e
            except aiosqlite.Error as e:
                await self._db.conn.rollback()
                raise PersistenceError(str(e)) from e

    async def create_conversation(
        self,
        actor_id: str,
        title: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> ConversationRecord:
        """Insert a new conversation and return it."""
        conversation_id = conversation_id or str(uuid.uuid4())
        await self._write(
            ("INSERT INTO chat_conversations (id, actor_id, title) VALUES (?, ?, ?)",
             (conversation_id, actor_id, title or DEFAULT_CONVERSATION_TITLE)),
        )
        logger.info("conversation_created", conversation_id=conversation_id, actor_id=actor_id)
        record = await self.get_conversation(conversation_id)
        if record is None:
            raise PersistenceError(f"Conversation {conversation_id} vanished after insert")
        return record

    async def get_conversation(self, conversation_id: str) -> Optional[ConversationRecord]:
        cursor = await self._db.conn.execute(
            "SELECT * FROM chat_conversations WHERE id = ?", (conversation_id,)
        )
        row = await cursor.fetchone()
        return self._row_to_conversation(row) if row else None

    async def save_message(self, record: MessageRecord) -> MessageRecord:
        """Insert a message under its creator-assigned id and touch the conversation."""
        await self._write(
            ("""INSERT INTO chat_messages
               (id, conversation_id, role, content, context_used,
                function_calls, prompt_strength, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                record.id,
                record.conversation_id,
                record.role,
                record.content,
                json.dumps(record.context_used) if record.context_used is not None else None,
                record.function_calls,
                record.prompt_strength,
                record.created_at.isoformat(timespec="milliseconds"),
            )),
            (f"UPDATE chat_conversations SET updated_at = {_NOW_SQL} WHERE id = ?",
             (record.conversation_id,)),
        )
        return record

    async def get_messages(self, conversation_id: str) -> list[MessageRecord]:
        """Messages of a conversation in creation order, with attached feedback."""
        cursor = await self._db.conn.execute(
            """SELECT * FROM chat_messages
               WHERE conversation_id = ?
               ORDER BY created_at ASC, seq ASC""",
            (conversation_id,),
        )
        messages = [self._row_to_message(row) for row in await cursor.fetchall()]
        if not messages:
            return messages

        placeholders = ", ".join("?" for _ in messages)
        cursor = await self._db.conn.execute(
            f"SELECT * FROM chat_feedback WHERE message_id IN ({placeholders}) ORDER BY created_at",
            [m.id for m in messages],
        )
        by_message: dict[str, list[FeedbackRecord]] = {}
        for row in await cursor.fetchall():
            feedback = self._row_to_feedback(row)
            by_message.setdefault(feedback.message_id, []).append(feedback)
        for message in messages:
            message.feedback = by_message.get(message.id, [])
        return messages

    async def list_conversations(self, actor_id: str, limit: int = 20) -> list[ConversationRecord]:
        """Non-archived conversations for an actor, most recently active first."""
        cursor = await self._db.conn.execute(
            """SELECT c.*,
                      (SELECT COUNT(*) FROM chat_messages m WHERE m.conversation_id = c.id)
                          AS message_count,
                      (SELECT substr(m.content, 1, 100) FROM chat_messages m
                        WHERE m.conversation_id = c.id
                        ORDER BY m.created_at DESC, m.seq DESC LIMIT 1) AS last_message
               FROM chat_conversations c
               WHERE c.actor_id = ? AND c.is_archived = 0
               ORDER BY c.updated_at DESC
               LIMIT ?""",
            (actor_id, limit),
        )
        rows = await cursor.fetchall()
        return [self._row_to_conversation(row) for row in rows]

    async def archive_conversation(self, conversation_id: str, actor_id: str) -> bool:
        async with self._db.write_lock:
            cursor = await self._db.conn.execute(
                "UPDATE chat_conversations SET is_archived = 1 WHERE id = ? AND actor_id = ?",
                (conversation_id, actor_id),
            )
            await self._db.conn.commit()
        return cursor.rowcount > 0

    async def save_feedback(self, record: FeedbackRecord) -> FeedbackRecord:
        await self._write(
            ("""INSERT INTO chat_feedback
               (id, message_id, actor_id, is_helpful, rating, comment,
                user_question, ai_response)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                record.id,
                record.message_id,
                record.actor_id,
                int(record.is_helpful),
                record.rating,
                record.comment,
                record.user_question,
                record.ai_response,
            )),
        )
        return record

    async def search(self, actor_id: str, query: str, limit: int = 20) -> list[MessageRecord]:
        """Full-text search across the actor's own messages."""
        phrase = '"' + query.replace('"', '""') + '"'
        cursor = await self._db.conn.execute(
            """SELECT m.* FROM chat_messages m
               JOIN chat_messages_fts f ON m.seq = f.rowid
               JOIN chat_conversations c ON c.id = m.conversation_id
               WHERE chat_messages_fts MATCH ? AND c.actor_id = ?
               ORDER BY rank
               LIMIT ?""",
            (phrase, actor_id, limit),
        )
        rows = await cursor.fetchall()
        return [self._row_to_message(row) for row in rows]

    @staticmethod
    def _row_to_conversation(row) -> ConversationRecord:
        keys = row.keys()
        return ConversationRecord(
            id=row["id"],
            actor_id=row["actor_id"],
            title=row["title"],
            is_archived=bool(row["is_archived"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            message_count=row["message_count"] if "message_count" in keys else 0,
            last_message=(row["last_message"] or "") if "last_message" in keys else "",
        )

    @staticmethod
    def _row_to_message(row) -> MessageRecord:
        return MessageRecord(
            id=row["id"],
            conversation_id=row["conversation_id"],
            role=row["role"],
            content=row["content"],
            context_used=json.loads(row["context_used"]) if row["context_used"] else None,
            function_calls=row["function_calls"],
            prompt_strength=row["prompt_strength"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    @staticmethod
    def _row_to_feedback(row) -> FeedbackRecord:
        return FeedbackRecord(
            id=row["id"],
            message_id=row["message_id"],
            actor_id=row["actor_id"],
            is_helpful=bool(row["is_helpful"]),
            rating=row["rating"],
            comment=row["comment"],
            user_question=row["user_question"],
            ai_response=row["ai_response"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )
