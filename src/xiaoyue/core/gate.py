"""Free-tier gate: decides whether a session may proceed without a bound wallet."""

from __future__ import annotations

from typing import Optional

from xiaoyue.config import GateConfig
from xiaoyue.core.types import GateDecision
from xiaoyue.errors import GateBlocked


def evaluate(user_message_count: int, has_bound_wallet: bool, free_limit: int) -> GateDecision:
    """Pure gate decision.

    The count is the one observed *before* the current request writes anything,
    so a request that reaches the limit still completes; only the next one is gated.
    """
    if user_message_count < free_limit:
        return GateDecision.ALLOW
    if has_bound_wallet:
        return GateDecision.ALLOW
    return GateDecision.REQUIRE_WALLET


def free_messages_left(user_message_count: int, free_limit: int) -> int:
    return max(0, free_limit - user_message_count)


class GatePolicy:
    """Gate bound to the configured limit and wallet-required message."""

    def __init__(self, config: GateConfig):
        self._config = config

    @property
    def free_limit(self) -> int:
        return self._config.free_limit

    @property
    def wallet_required_message(self) -> str:
        return self._config.wallet_required_message.format(limit=self._config.free_limit)

    def decide(
        self,
        user_message_count: int,
        stored_wallet: Optional[str],
        incoming_wallet: Optional[str] = None,
    ) -> GateDecision:
        has_wallet = bool(stored_wallet or incoming_wallet)
        return evaluate(user_message_count, has_wallet, self._config.free_limit)

    def enforce(
        self,
        user_message_count: int,
        stored_wallet: Optional[str],
        incoming_wallet: Optional[str] = None,
    ) -> None:
        """Raise GateBlocked when the decision is REQUIRE_WALLET."""
        decision = self.decide(user_message_count, stored_wallet, incoming_wallet)
        if decision is GateDecision.REQUIRE_WALLET:
            raise GateBlocked(self.wallet_required_message, user_message_count)

    def remaining(self, user_message_count: int) -> int:
        return free_messages_left(user_message_count, self._config.free_limit)
