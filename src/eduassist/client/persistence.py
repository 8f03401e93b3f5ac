"""Persistence coordinator: lazy conversation creation and background saves."""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from typing import Optional

from eduassist.client.accumulator import ChatMessage
from eduassist.core.types import ContextUsed, Role
from eduassist.log import get_logger
from eduassist.storage.models import FeedbackRecord, MessageRecord
from eduassist.storage.store import ConversationStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class SaveOutcome:
    """What became of one background write."""

    record_id: str
    ok: bool
    conversation_id: Optional[str] = None
    error: Optional[str] = None


def to_record(message: ChatMessage, conversation_id: str) -> MessageRecord:
    return MessageRecord(
        id=message.id,
        conversation_id=conversation_id,
        role=str(message.role),
        content=message.content,
        context_used=message.context_used.to_dict() if message.context_used else None,
        function_calls=message.function_calls,
        prompt_strength=message.prompt_strength,
        created_at=message.created_at,
    )


def from_record(record: MessageRecord) -> ChatMessage:
    return ChatMessage(
        id=record.id,
        role=Role(record.role),
        content=record.content,
        created_at=record.created_at,
        context_used=ContextUsed.from_dict(record.context_used) if record.context_used else None,
        function_calls=record.function_calls,
        prompt_strength=record.prompt_strength,
        finalized=True,
    )


class PersistenceCoordinator:
    """Sole writer of one chat session's conversation and messages.

    The conversation row is created lazily on the first save and its id reused
    for the rest of the session. Message saves run as background tasks that
    never raise into the caller; each resolves to a SaveOutcome. Saves are
    chained so they reach the store in the order they were requested.

    Every switch of the active conversation starts a new generation. A save
    belongs to the generation that was active when it was requested and lands
    in that generation's conversation, even if the session has moved on.
    """

    def __init__(self, store: ConversationStore, actor_id: str):
        self._store = store
        self._actor_id = actor_id
        self._generation = 0
        self._conversations: dict[int, str] = {}
        self._creating: dict[int, asyncio.Future[str]] = {}
        self._pending: set[asyncio.Task[SaveOutcome]] = set()
        self._tail: Optional[asyncio.Task[SaveOutcome]] = None

    @property
    def conversation_id(self) -> Optional[str]:
        return self._conversations.get(self._generation)

    async def ensure_conversation(self) -> str:
        """Return the active conversation id, creating the conversation at most once.

        Callers that arrive while creation is in flight share its result. A
        failed creation is not cached, so a later call tries again.
        """
        return await self._conversation_for(self._generation)

    async def _conversation_for(self, generation: int) -> str:
        conversation_id = self._conversations.get(generation)
        if conversation_id is not None:
            return conversation_id
        flight = self._creating.get(generation)
        if flight is None:
            flight = asyncio.ensure_future(self._create_conversation(generation))
            self._creating[generation] = flight
        return await asyncio.shield(flight)

    async def _create_conversation(self, generation: int) -> str:
        try:
            record = await self._store.create_conversation(
                self._actor_id, conversation_id=str(uuid.uuid4())
            )
        except Exception as e:
            logger.error("conversation_create_failed", actor_id=self._actor_id, error=str(e))
            raise
        finally:
            self._creating.pop(generation, None)
        self._conversations[generation] = record.id
        logger.info("conversation_ensured", conversation_id=record.id, generation=generation)
        return record.id

    def save_message(self, message: ChatMessage) -> asyncio.Task[SaveOutcome]:
        """Schedule a save into the active conversation and return immediately."""
        previous = self._tail
        task = asyncio.create_task(
            self._save(message, previous, self._generation), name=f"save-message-{message.id}"
        )
        self._tail = task
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _save(
        self,
        message: ChatMessage,
        previous: Optional[asyncio.Task[SaveOutcome]],
        generation: int,
    ) -> SaveOutcome:
        if previous is not None:
            await asyncio.wait([previous])
        try:
            conversation_id = await self._conversation_for(generation)
            await self._store.save_message(to_record(message, conversation_id))
        except Exception as e:
            logger.error(
                "message_save_failed",
                message_id=message.id,
                role=str(message.role),
                error=str(e),
                error_type=type(e).__name__,
            )
            return SaveOutcome(record_id=message.id, ok=False, error=str(e))
        logger.debug("message_saved", message_id=message.id, conversation_id=conversation_id)
        return SaveOutcome(record_id=message.id, ok=True, conversation_id=conversation_id)

    def pending(self) -> list[asyncio.Task[SaveOutcome]]:
        return [t for t in self._pending if not t.done()]

    async def drain(self) -> list[SaveOutcome]:
        """Wait for every outstanding save."""
        tasks = list(self._pending)
        if not tasks:
            return []
        return list(await asyncio.gather(*tasks))

    def start_new_conversation(self) -> None:
        """Forget the active conversation; the next save creates a new one."""
        self._generation += 1
        self._tail = None

    async def open_conversation(self, conversation_id: str) -> list[ChatMessage]:
        """Make an existing conversation active and return its messages."""
        records = await self._store.get_messages(conversation_id)
        self._generation += 1
        self._conversations[self._generation] = conversation_id
        self._tail = None
        return [from_record(r) for r in records]

    async def submit_feedback(
        self,
        message: ChatMessage,
        user_question: str,
        is_helpful: bool,
        rating: str,
        comment: Optional[str] = None,
    ) -> SaveOutcome:
        """Record feedback against an assistant message by its in-memory id."""
        record = FeedbackRecord(
            id=str(uuid.uuid4()),
            message_id=message.id,
            actor_id=self._actor_id,
            is_helpful=is_helpful,
            rating=rating,
            comment=comment,
            user_question=user_question,
            ai_response=message.content,
        )
        try:
            await self._store.save_feedback(record)
        except Exception as e:
            logger.error("feedback_save_failed", message_id=message.id, error=str(e))
            return SaveOutcome(record_id=record.id, ok=False, error=str(e))
        logger.info("feedback_saved", message_id=message.id, rating=rating)
        return SaveOutcome(record_id=record.id, ok=True, conversation_id=self.conversation_id)
