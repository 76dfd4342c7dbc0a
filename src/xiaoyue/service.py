"""Session/chat service: the operations exposed over HTTP, wired in the required order."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from xiaoyue.ai.orchestrator import AnalysisTurnResult, ChatTurnResult, ConversationOrchestrator
from xiaoyue.chain.snapshot import ChainSnapshotBuilder, TokenSnapshot
from xiaoyue.core.gate import GatePolicy
from xiaoyue.errors import SessionNotFound
from xiaoyue.log import get_logger
from xiaoyue.storage.models import Message
from xiaoyue.storage.session_store import SessionStore

logger = get_logger(__name__)


@dataclass
class SessionView:
    session_id: str
    wallet_address: Optional[str]
    locale: str
    user_message_count: int
    free_messages_left: int
    messages: list[Message] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "walletAddress": self.wallet_address,
            "locale": self.locale,
            "messageCount": len(self.messages),
            "userMessageCount": self.user_message_count,
            "freeMessagesLeft": self.free_messages_left,
            "messages": [m.to_dict() for m in self.messages],
        }


class ChatService:
    def __init__(
        self,
        store: SessionStore,
        gate: GatePolicy,
        snapshots: ChainSnapshotBuilder,
        orchestrator: ConversationOrchestrator,
    ):
        self._store = store
        self._gate = gate
        self._snapshots = snapshots
        self._orchestrator = orchestrator

    async def open_session(
        self,
        session_id: Optional[str] = None,
        locale: Optional[str] = None,
        wallet_address: Optional[str] = None,
    ) -> SessionView:
        """Resume or start a session.

        An unknown id silently starts a new session. Unlike chat and analysis
        turns, a wallet supplied here replaces a different bound wallet.
        """
        session = await self._store.get_session(session_id) if session_id else None
        if session is None:
            session = await self._store.create_session(locale, wallet_address)

        if wallet_address and session.wallet_address != wallet_address:
            await self._store.attach_wallet(session.id, wallet_address)
            session.wallet_address = wallet_address

        messages = await self._store.list_messages(session.id)
        count = await self._store.user_message_count(session.id)
        return SessionView(
            session_id=session.id,
            wallet_address=session.wallet_address,
            locale=session.locale,
            user_message_count=count,
            free_messages_left=self._gate.remaining(count),
            messages=messages,
        )

    async def session_messages(self, session_id: str) -> list[Message]:
        session = await self._store.get_session(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return await self._store.list_messages(session.id)

    async def token_info(self, mint: str) -> TokenSnapshot:
        return await self._snapshots.build_snapshot(mint)

    async def analyze_token(
        self,
        mint: str,
        session_id: Optional[str] = None,
        locale: Optional[str] = None,
        wallet_address: Optional[str] = None,
    ) -> AnalysisTurnResult:
        return await self._orchestrator.analysis_turn(session_id, mint, locale, wallet_address)

    async def chat(
        self,
        prompt: str,
        session_id: Optional[str] = None,
        locale: Optional[str] = None,
        wallet_address: Optional[str] = None,
    ) -> ChatTurnResult:
        return await self._orchestrator.chat_turn(session_id, prompt, locale, wallet_address)
