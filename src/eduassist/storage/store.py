"""Durable conversation store boundary used by the persistence coordinator."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from eduassist.storage.models import ConversationRecord, FeedbackRecord, MessageRecord


class ConversationStore(ABC):
    """Where conversations, messages and feedback end up.

    Implemented locally over SQLite and remotely over the gateway's HTTP API.
    Failures raise ``PersistenceError``.
    """

    @abstractmethod
    async def create_conversation(
        self,
        actor_id: str,
        title: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> ConversationRecord:
        ...

    @abstractmethod
    async def save_message(self, record: MessageRecord) -> MessageRecord:
        ...

    @abstractmethod
    async def get_messages(self, conversation_id: str) -> list[MessageRecord]:
        ...

    @abstractmethod
    async def save_feedback(self, record: FeedbackRecord) -> FeedbackRecord:
        ...
