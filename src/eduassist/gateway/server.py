"""HTTP surface: the chat push-stream and the conversation history endpoints."""

from __future__ import annotations

import json
import uuid
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from eduassist import __version__
from eduassist.core.types import Actor
from eduassist.errors import EduAssistError, NotFoundError, RequestValidationError
from eduassist.gateway.auth import authorize
from eduassist.gateway.frames import encode_frame
from eduassist.gateway.schemas import (
    CreateConversationRequest,
    FeedbackRequest,
    SaveMessageRequest,
    TurnRequest,
)
from eduassist.log import get_logger
from eduassist.storage.models import FeedbackRecord, MessageRecord, utcnow

if TYPE_CHECKING:
    from eduassist.app import EduAssistApp

logger = get_logger(__name__)

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


async def _parse_body(request: Request, model):
    try:
        raw = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise RequestValidationError("Request body must be JSON") from None
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        field = ".".join(str(p) for p in first.get("loc", ())) or "body"
        raise RequestValidationError(f"{field}: {first.get('msg', 'invalid')}") from None


def create_server(gateway: EduAssistApp) -> FastAPI:
    """Build the FastAPI application around a started or startable EduAssistApp."""

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        await gateway.start()
        try:
            yield
        finally:
            await gateway.stop()

    app = FastAPI(title="eduassist", version=__version__, lifespan=lifespan)

    @app.exception_handler(EduAssistError)
    async def _handle_error(request: Request, exc: EduAssistError) -> JSONResponse:
        logger.info("request_rejected", path=request.url.path, code=exc.code, status=exc.http_status)
        return JSONResponse({"error": exc.message, "code": exc.code}, status_code=exc.http_status)

    async def current_actor(request: Request) -> Actor:
        return await authorize(request, gateway.resolver, gateway.config.auth.allowed_roles)

    async def owned_conversation(conversation_id: str, actor: Actor):
        conversation = await gateway.conversation_repo.get_conversation(conversation_id)
        if conversation is None or conversation.actor_id != actor.actor_id:
            raise NotFoundError("Conversation not found")
        return conversation

    @app.get("/healthz")
    async def healthz() -> dict:
        return {
            "status": "ok",
            "database": gateway.db.is_open,
            "model": gateway.config.ai.model,
            "tools": [str(t.name) for t in gateway.tool_registry.all_tools()],
        }

    @app.post("/api/chatbot/stream")
    async def stream_turn(request: Request) -> StreamingResponse:
        body = await _parse_body(request, TurnRequest)
        if not body.message.strip():
            raise RequestValidationError("Message is required")
        actor = await current_actor(request)

        if not await gateway.records.linked_students(actor.actor_id):
            raise NotFoundError("No student relationships found")

        async def event_gen() -> AsyncIterator[bytes]:
            async for frame in gateway.orchestrator.run_turn(body.message, body.history_pairs(), actor):
                yield encode_frame(frame)

        return StreamingResponse(event_gen(), media_type="text/event-stream", headers=STREAM_HEADERS)

    @app.post("/api/chat/conversations", status_code=201)
    async def create_conversation(request: Request) -> dict:
        actor = await current_actor(request)
        body = await _parse_body(request, CreateConversationRequest)
        conversation = await gateway.conversation_repo.create_conversation(
            actor.actor_id, title=body.title, conversation_id=body.id
        )
        return conversation.to_dict()

    @app.get("/api/chat/conversations")
    async def list_conversations(request: Request, limit: int = 20) -> list[dict]:
        actor = await current_actor(request)
        conversations = await gateway.conversation_repo.list_conversations(
            actor.actor_id, limit=max(1, min(limit, 100))
        )
        return [c.to_dict() for c in conversations]

    @app.post("/api/chat/conversations/{conversation_id}/archive")
    async def archive_conversation(conversation_id: str, request: Request) -> dict:
        actor = await current_actor(request)
        await owned_conversation(conversation_id, actor)
        await gateway.conversation_repo.archive_conversation(conversation_id, actor.actor_id)
        return {"success": True}

    @app.post("/api/chat/conversations/{conversation_id}/messages", status_code=201)
    async def save_message(conversation_id: str, request: Request) -> dict:
        actor = await current_actor(request)
        body = await _parse_body(request, SaveMessageRequest)
        await owned_conversation(conversation_id, actor)
        record = await gateway.conversation_repo.save_message(
            MessageRecord(
                id=body.id,
                conversation_id=conversation_id,
                role=body.role,
                content=body.content,
                context_used=body.context_used,
                function_calls=body.function_calls,
                prompt_strength=body.prompt_strength,
                created_at=body.created_at or utcnow(),
            )
        )
        return record.to_dict()

    @app.get("/api/chat/conversations/{conversation_id}/messages")
    async def get_messages(conversation_id: str, request: Request) -> list[dict]:
        actor = await current_actor(request)
        await owned_conversation(conversation_id, actor)
        messages = await gateway.conversation_repo.get_messages(conversation_id)
        return [m.to_dict() for m in messages]

    @app.post("/api/chat/messages/{message_id}/feedback", status_code=201)
    async def submit_feedback(message_id: str, request: Request) -> dict:
        actor = await current_actor(request)
        body = await _parse_body(request, FeedbackRequest)
        record = await gateway.conversation_repo.save_feedback(
            FeedbackRecord(
                id=str(uuid.uuid4()),
                message_id=message_id,
                actor_id=actor.actor_id,
                is_helpful=body.is_helpful,
                rating=body.rating,
                comment=body.comment,
                user_question=body.user_question,
                ai_response=body.ai_response,
            )
        )
        return record.to_dict()

    @app.get("/api/chat/search")
    async def search_messages(request: Request, q: str = "", limit: int = 20) -> list[dict]:
        actor = await current_actor(request)
        if not q.strip():
            raise RequestValidationError("q: query is required")
        results = await gateway.conversation_repo.search(actor.actor_id, q, limit=max(1, min(limit, 50)))
        return [m.to_dict() for m in results]

    return app
