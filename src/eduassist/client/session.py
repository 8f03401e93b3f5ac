"""Chat client: sends turns to the gateway and consumes the push-stream."""

from __future__ import annotations

import asyncio
import uuid
from typing import Callable, Optional

import httpx

from eduassist.client.accumulator import ChatMessage, TurnAccumulator
from eduassist.client.decoder import FrameDecoder
from eduassist.client.persistence import PersistenceCoordinator, SaveOutcome
from eduassist.client.remote_store import RemoteConversationStore
from eduassist.config import ClientConfig
from eduassist.core.types import Role
from eduassist.errors import (
    NotFoundError,
    RequestValidationError,
    StreamTransportError,
    TurnInProgressError,
    TurnRejectedError,
)
from eduassist.gateway.frames import Frame, TextFrame
from eduassist.log import get_logger

logger = get_logger(__name__)

STREAM_PATH = "/api/chatbot/stream"
DEFAULT_IDLE_TIMEOUT = 60.0

TextCallback = Callable[[str], None]


def _rejection_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or resp.reason_phrase
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return resp.reason_phrase


class ChatSession:
    """One user's chat window: in-memory messages plus a persistence coordinator.

    Only one turn may be open at a time. Saves never block the turn; their
    tasks are available through ``coordinator.pending()``.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        coordinator: PersistenceCoordinator,
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT,
    ):
        self._client = client
        self.coordinator = coordinator
        self.idle_timeout = idle_timeout
        self.messages: list[ChatMessage] = []
        self._accumulator = TurnAccumulator()
        self._busy = False

    @classmethod
    def from_config(cls, config: ClientConfig) -> ChatSession:
        """Session talking to a remote gateway for both turns and persistence."""
        headers = {"Authorization": f"Bearer {config.token}"} if config.token else {}
        client = httpx.AsyncClient(
            base_url=config.base_url,
            headers=headers,
            timeout=httpx.Timeout(10.0, read=None),
        )
        # The gateway derives the actor from the bearer token.
        coordinator = PersistenceCoordinator(RemoteConversationStore(client), actor_id="")
        return cls(client, coordinator, idle_timeout=config.idle_timeout)

    async def aclose(self) -> None:
        await self.coordinator.drain()
        await self._client.aclose()

    @property
    def turn_open(self) -> bool:
        return self._busy

    def history(self) -> list[dict[str, str]]:
        return [m.history_item() for m in self.messages if m.content]

    async def send(self, text: str, on_text: Optional[TextCallback] = None) -> ChatMessage:
        """Run one turn and return the assistant message it produced.

        Raises TurnInProgressError if a turn is already open and
        TurnRejectedError if the gateway refuses the request.
        """
        if self._busy:
            raise TurnInProgressError("A turn is already in progress")
        text = text.strip()
        if not text:
            raise RequestValidationError("Message is required")

        self._busy = True
        try:
            history = self.history()
            user_message = ChatMessage(id=str(uuid.uuid4()), role=Role.USER, content=text)
            self.messages.append(user_message)
            self.coordinator.save_message(user_message)

            self._accumulator.reset()
            self._accumulator.begin(str(uuid.uuid4()))
            try:
                await self._stream_turn(text, history, on_text)
            except TurnRejectedError:
                self._accumulator.reset()
                raise

            assistant = self._accumulator.message
            if assistant is None:
                raise StreamTransportError("Turn closed without an assistant message")
            self.messages.append(assistant)
            if assistant.finalized and assistant.content:
                self.coordinator.save_message(assistant)
            return assistant
        finally:
            self._busy = False

    async def _stream_turn(
        self, text: str, history: list[dict[str, str]], on_text: Optional[TextCallback]
    ) -> None:
        decoder = FrameDecoder()
        acc = self._accumulator
        try:
            async with self._client.stream(
                "POST", STREAM_PATH, json={"message": text, "history": history}
            ) as resp:
                if not resp.is_success:
                    await resp.aread()
                    message = _rejection_message(resp)
                    logger.warning("turn_rejected", status=resp.status_code, error=message)
                    raise TurnRejectedError(message, resp.status_code)

                chunks = resp.aiter_bytes()
                while not acc.is_closed:
                    try:
                        chunk = await asyncio.wait_for(anext(chunks), timeout=self.idle_timeout)
                    except StopAsyncIteration:
                        break
                    except asyncio.TimeoutError:
                        acc.abort(f"no data for {self.idle_timeout:g}s")
                        break
                    for frame in decoder.feed(chunk):
                        self._apply(frame, on_text)
                if not acc.is_closed:
                    for frame in decoder.flush():
                        self._apply(frame, on_text)
        except httpx.RequestError as e:
            acc.abort(f"connection lost: {e}")

        if not acc.is_closed:
            acc.abort("stream ended before completion")

    def _apply(self, frame: Frame, on_text: Optional[TextCallback]) -> None:
        if self._accumulator.apply(frame) and on_text is not None and isinstance(frame, TextFrame):
            on_text(frame.text)

    def new_conversation(self) -> None:
        if self._busy:
            raise TurnInProgressError("A turn is already in progress")
        self.coordinator.start_new_conversation()
        self.messages = []

    async def open_conversation(self, conversation_id: str) -> list[ChatMessage]:
        if self._busy:
            raise TurnInProgressError("A turn is already in progress")
        self.messages = await self.coordinator.open_conversation(conversation_id)
        return self.messages

    async def give_feedback(
        self,
        message_id: str,
        is_helpful: bool,
        rating: str,
        comment: Optional[str] = None,
    ) -> SaveOutcome:
        """Rate an assistant answer; the question is the user message before it."""
        for index, message in enumerate(self.messages):
            if message.id == message_id and message.role == Role.ASSISTANT:
                break
        else:
            raise NotFoundError(f"No assistant message {message_id}")
        question = next(
            (m.content for m in reversed(self.messages[:index]) if m.role == Role.USER), ""
        )
        return await self.coordinator.submit_feedback(
            message, user_question=question, is_helpful=is_helpful, rating=rating, comment=comment
        )
