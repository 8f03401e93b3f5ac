"""ConversationStore backed by the gateway's HTTP persistence endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

import httpx

from eduassist.errors import DuplicateRecordError, PersistenceError
from eduassist.log import get_logger
from eduassist.storage.models import ConversationRecord, FeedbackRecord, MessageRecord
from eduassist.storage.store import ConversationStore

logger = get_logger(__name__)


def _conversation_from_dict(data: dict[str, Any]) -> ConversationRecord:
    return ConversationRecord(
        id=data["id"],
        actor_id=data["actor_id"],
        title=data["title"],
        is_archived=bool(data.get("is_archived", False)),
        created_at=datetime.fromisoformat(data["created_at"]),
        updated_at=datetime.fromisoformat(data["updated_at"]),
        message_count=data.get("message_count", 0),
        last_message=data.get("last_message", ""),
    )


def _feedback_from_dict(data: dict[str, Any]) -> FeedbackRecord:
    return FeedbackRecord(
        id=data["id"],
        message_id=data["message_id"],
        actor_id=data["actor_id"],
        is_helpful=bool(data["is_helpful"]),
        rating=data["rating"],
        comment=data.get("comment"),
        user_question=data["user_question"],
        ai_response=data["ai_response"],
        created_at=datetime.fromisoformat(data["created_at"]),
    )


def _message_from_dict(data: dict[str, Any]) -> MessageRecord:
    return MessageRecord(
        id=data["id"],
        conversation_id=data["conversation_id"],
        role=data["role"],
        content=data["content"],
        context_used=data.get("context_used"),
        function_calls=data.get("function_calls", 0),
        prompt_strength=data.get("prompt_strength", 0.0),
        created_at=datetime.fromisoformat(data["created_at"]),
        feedback=[_feedback_from_dict(f) for f in data.get("feedback", [])],
    )


class RemoteConversationStore(ConversationStore):
    """Talks to ``/api/chat/*`` with the caller's bearer token.

    The server derives the actor from the token, so ``actor_id`` arguments are
    only used for logging here.
    """

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def create_conversation(
        self,
        actor_id: str,
        title: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> ConversationRecord:
        data = await self._request(
            "POST", "/api/chat/conversations", json={"id": conversation_id, "title": title}
        )
        logger.debug("remote_conversation_created", conversation_id=data["id"], actor_id=actor_id)
        return _conversation_from_dict(data)

    async def save_message(self, record: MessageRecord) -> MessageRecord:
        body = {
            "id": record.id,
            "role": record.role,
            "content": record.content,
            "contextUsed": record.context_used,
            "functionCalls": record.function_calls,
            "promptStrength": record.prompt_strength,
            "createdAt": record.created_at.isoformat(),
        }
        data = await self._request(
            "POST", f"/api/chat/conversations/{record.conversation_id}/messages", json=body
        )
        return _message_from_dict(data)

    async def get_messages(self, conversation_id: str) -> list[MessageRecord]:
        data = await self._request("GET", f"/api/chat/conversations/{conversation_id}/messages")
        return [_message_from_dict(item) for item in data]

    async def save_feedback(self, record: FeedbackRecord) -> FeedbackRecord:
        body = {
            "isHelpful": record.is_helpful,
            "rating": record.rating,
            "comment": record.comment,
            "userQuestion": record.user_question,
            "aiResponse": record.ai_response,
        }
        data = await self._request("POST", f"/api/chat/messages/{record.message_id}/feedback", json=body)
        return _feedback_from_dict(data)

    async def _request(self, method: str, url: str, json: Any = None) -> Any:
        try:
            resp = await self._client.request(method, url, json=json)
        except httpx.RequestError as e:
            raise PersistenceError(f"{method} {url} failed: {e}") from e
        if resp.status_code == 409:
            raise DuplicateRecordError(resp.text)
        if resp.status_code >= 400:
            raise PersistenceError(
                f"{method} {url} returned {resp.status_code}: {resp.text}", status_code=resp.status_code
            )
        return resp.json()
