"""Conversation orchestrator: gate -> context -> model -> persisted exchange."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from xiaoyue.ai.client import AIClient
from xiaoyue.ai.conversation import build_messages
from xiaoyue.ai.prompts import analysis_request_label, build_analysis_prompt, build_system_prompt
from xiaoyue.chain.snapshot import ChainSnapshotBuilder, TokenSnapshot
from xiaoyue.config import AppConfig
from xiaoyue.core.gate import GatePolicy
from xiaoyue.core.session import SessionLocks
from xiaoyue.core.types import Role
from xiaoyue.errors import GateBlocked, SessionNotFound, ValidationError
from xiaoyue.log import get_logger
from xiaoyue.storage.models import Session
from xiaoyue.storage.session_store import SessionStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class ChatTurnResult:
    session_id: str
    message: str
    wallet_address: Optional[str]
    free_messages_left: int


@dataclass(frozen=True)
class AnalysisTurnResult:
    session_id: str
    analysis: Optional[str]
    token: TokenSnapshot
    free_messages_left: int


class ConversationOrchestrator:
    """Runs chat and token-analysis turns against one session.

    The gate is always evaluated on the count observed before the turn writes
    anything; a blocked turn performs no message writes, no chain calls and no
    model calls.
    """

    def __init__(
        self,
        config: AppConfig,
        store: SessionStore,
        gate: GatePolicy,
        snapshots: ChainSnapshotBuilder,
        ai_client: AIClient,
        locks: SessionLocks,
    ):
        self._config = config
        self._store = store
        self._gate = gate
        self._snapshots = snapshots
        self._ai_client = ai_client
        self._locks = locks

    async def chat_turn(
        self,
        session_id: Optional[str],
        prompt: str,
        locale: Optional[str] = None,
        wallet_address: Optional[str] = None,
    ) -> ChatTurnResult:
        if not prompt or not prompt.strip():
            raise ValidationError("Prompt cannot be empty")

        session = await self._store.get_session(session_id) if session_id else None
        if session is None:
            session = await self._store.create_session(locale, wallet_address)

        async with self._locks.hold(session.id):
            count = await self._store.user_message_count(session.id)
            self._check_gate(session, count, wallet_address)
            await self._bind_wallet_if_absent(session, wallet_address)

            ai_config = self._config.ai
            # Tail is read before the new input is stored so it appears exactly once
            history = await self._store.recent_messages(session.id, ai_config.history_limit)
            system = build_system_prompt(self._config.persona, session.locale)

            # The user's literal input is kept even if the model call below fails
            await self._store.append_message(session.id, Role.USER, prompt)

            response = await self._ai_client.chat(
                system=system,
                messages=build_messages(history, new_input=prompt),
                model=ai_config.model,
                max_tokens=ai_config.chat.max_tokens,
                temperature=ai_config.chat.temperature,
            )
            reply = response.text.strip()
            await self._store.append_message(session.id, Role.ASSISTANT, reply)

            count_after = await self._store.user_message_count(session.id)

        logger.info(
            "chat_turn_completed",
            session_id=session.id,
            history=len(history),
            reply_length=len(reply),
            user_messages=count_after,
        )
        return ChatTurnResult(
            session_id=session.id,
            message=reply,
            wallet_address=session.wallet_address,
            free_messages_left=self._gate.remaining(count_after),
        )

    async def analysis_turn(
        self,
        session_id: Optional[str],
        mint: str,
        locale: Optional[str] = None,
        wallet_address: Optional[str] = None,
    ) -> AnalysisTurnResult:
        if not mint or not mint.strip():
            raise ValidationError("Mint address required")

        if session_id:
            session = await self._store.get_session(session_id)
            if session is None:
                raise SessionNotFound(session_id)
        else:
            session = await self._store.create_session(locale, wallet_address)

        async with self._locks.hold(session.id):
            count = await self._store.user_message_count(session.id)
            self._check_gate(session, count, wallet_address)
            await self._bind_wallet_if_absent(session, wallet_address)

            snapshot = await self._snapshots.build_snapshot(mint)

            ai_config = self._config.ai
            response = await self._ai_client.chat(
                system=build_system_prompt(self._config.persona, session.locale),
                messages=[{"role": Role.USER.value, "content": build_analysis_prompt(snapshot)}],
                model=ai_config.model,
                max_tokens=ai_config.analysis.max_tokens,
                temperature=ai_config.analysis.temperature,
            )
            reply = response.text.strip()

            # An attempt without a result is not recorded
            if reply:
                await self._store.append_messages(
                    session.id,
                    [
                        (Role.USER, analysis_request_label(snapshot.mint)),
                        (Role.ASSISTANT, reply),
                    ],
                )

            count_after = await self._store.user_message_count(session.id)

        logger.info(
            "analysis_turn_completed",
            session_id=session.id,
            mint=snapshot.mint,
            recorded=bool(reply),
            user_messages=count_after,
        )
        return AnalysisTurnResult(
            session_id=session.id,
            analysis=reply or None,
            token=snapshot,
            free_messages_left=self._gate.remaining(count_after),
        )

    def _check_gate(self, session: Session, count: int, wallet_address: Optional[str]) -> None:
        try:
            self._gate.enforce(count, session.wallet_address, wallet_address)
        except GateBlocked:
            logger.info("gate_blocked", session_id=session.id, user_messages=count)
            raise

    async def _bind_wallet_if_absent(self, session: Session, wallet_address: Optional[str]) -> None:
        """Turns only attach a wallet when none is bound; they never replace one."""
        if wallet_address and not session.wallet_address:
            await self._store.attach_wallet(session.id, wallet_address)
            session.wallet_address = wallet_address
