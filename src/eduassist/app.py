"""Application wiring - builds the gateway components and manages their lifecycle."""

from __future__ import annotations

from typing import Optional

from eduassist.ai.client import AIClient, AnthropicClient
from eduassist.ai.orchestrator import TurnOrchestrator
from eduassist.ai.tools.registry import ToolRegistry
from eduassist.config import AppConfig
from eduassist.gateway.auth import ActorResolver, StaticTokenResolver
from eduassist.log import get_logger
from eduassist.storage.conversation_repo import ConversationRepository
from eduassist.storage.database import Database
from eduassist.storage.records import RecordStore, SqliteRecordStore

logger = get_logger(__name__)


class EduAssistApp:
    """Top-level container for the gateway.

    Collaborators default to the configured production implementations; tests
    inject a scripted ``ai_client`` and their own resolver or record store.
    """

    def __init__(
        self,
        config: AppConfig,
        ai_client: Optional[AIClient] = None,
        resolver: Optional[ActorResolver] = None,
        records: Optional[RecordStore] = None,
    ):
        self.config = config
        self.db = Database(config.storage.db_path)
        self.conversation_repo = ConversationRepository(self.db)
        self.records = records or SqliteRecordStore(self.db)
        self.tool_registry = ToolRegistry(self.records)
        self.resolver = resolver or StaticTokenResolver(config.auth)
        self._ai_client = ai_client
        self.orchestrator: Optional[TurnOrchestrator] = None
        if ai_client is not None:
            self.orchestrator = self._build_orchestrator(ai_client)

    async def start(self) -> None:
        """Open storage and build the model client."""
        await self.db.initialize()
        if self.orchestrator is None:
            self._ai_client = self._create_ai_client()
            self.orchestrator = self._build_orchestrator(self._ai_client)
        logger.info(
            "eduassist_started",
            model=self.config.ai.model,
            tools=len(self.tool_registry.all_tools()),
            tokens=len(self.config.auth.tokens),
        )

    async def stop(self) -> None:
        await self.db.close()
        logger.info("eduassist_stopped")

    def _create_ai_client(self) -> AIClient:
        if not self.config.anthropic:
            raise ValueError("No 'anthropic' section in config; the gateway needs a model backend")
        return AnthropicClient(self.config.anthropic)

    def _build_orchestrator(self, ai_client: AIClient) -> TurnOrchestrator:
        return TurnOrchestrator(
            ai_client=ai_client,
            tool_registry=self.tool_registry,
            records=self.records,
            ai_config=self.config.ai,
        )
