"""Application orchestrator - wires all components and manages lifecycle."""

from __future__ import annotations

import httpx

from xiaoyue.ai.client import AIClient, AnthropicClient
from xiaoyue.ai.orchestrator import ConversationOrchestrator
from xiaoyue.chain.rpc import SolanaRPC
from xiaoyue.chain.snapshot import ChainSnapshotBuilder
from xiaoyue.config import AppConfig
from xiaoyue.core.gate import GatePolicy
from xiaoyue.core.session import SessionLocks
from xiaoyue.log import get_logger
from xiaoyue.service import ChatService
from xiaoyue.storage.database import Database
from xiaoyue.storage.session_store import SessionStore

logger = get_logger(__name__)


class XiaoyueApp:
    """Top-level composition root.

    ``ai_client`` and ``http_client`` may be injected (tests, custom transports);
    otherwise they are built from the configuration.
    """

    def __init__(
        self,
        config: AppConfig,
        ai_client: AIClient | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.config = config
        self.db = Database(config.storage.db_path)
        self.store = SessionStore(self.db, default_locale=config.default_locale)
        self.gate = GatePolicy(config.gate)
        self.locks = SessionLocks(enabled=config.gate.serialize_sessions)
        self.rpc = SolanaRPC(config.chain, client=http_client)
        self.snapshots = ChainSnapshotBuilder(self.rpc, config.chain)
        self.ai_client = ai_client or self._create_ai_client()
        self.orchestrator = ConversationOrchestrator(
            config=config,
            store=self.store,
            gate=self.gate,
            snapshots=self.snapshots,
            ai_client=self.ai_client,
            locks=self.locks,
        )
        self.service = ChatService(
            store=self.store,
            gate=self.gate,
            snapshots=self.snapshots,
            orchestrator=self.orchestrator,
        )

    async def start(self) -> None:
        """Initialize and start all components."""
        # 1. Database
        await self.db.initialize()

        # 2. Chain RPC transport
        await self.rpc.start()

        logger.info(
            "xiaoyue_started",
            model=self.config.ai.model,
            free_limit=self.config.gate.free_limit,
            serialize_sessions=self.locks.enabled,
        )

    async def stop(self) -> None:
        """Gracefully shut down all components."""
        try:
            await self.ai_client.close()
        except Exception as e:
            logger.error("ai_client_close_error", error=str(e))
        await self.rpc.stop()
        await self.db.close()
        logger.info("xiaoyue_stopped")

    def _create_ai_client(self) -> AIClient:
        if not self.config.anthropic:
            raise ValueError("No 'anthropic' section in config; the language model cannot be reached")
        return AnthropicClient(self.config.anthropic)
