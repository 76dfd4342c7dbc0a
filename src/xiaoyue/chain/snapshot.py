"""
Token snapshot builder - on-chain supply and top-holder aggregation.

Fan-out/join over the chain RPC:
- supply and the largest-holder list are fetched concurrently in a task group
- owners of the top holder accounts are resolved concurrently, each lookup
  failing soft to a null owner
- the snapshot is stamped when it is assembled, after every sub-call joined

The two top-level queries are not linked at the provider, so a snapshot is a
point-in-time approximation rather than an atomic read. Snapshots are never cached.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from solders.pubkey import Pubkey

from xiaoyue.chain.rpc import RPCError, SolanaRPC
from xiaoyue.config import ChainConfig
from xiaoyue.errors import InvalidMintOrRpcFailure
from xiaoyue.log import get_logger

logger = get_logger(__name__)


# ============================================================
# DATA MODELS
# ============================================================

@dataclass
class HolderRecord:
    """One of the largest token accounts for a mint."""
    address: str
    owner: Optional[str]          # wallet owning the token account, None if unresolved
    amount: Optional[float]       # human-scaled balance
    decimals: int


@dataclass
class TokenSnapshot:
    """Point-in-time aggregation of supply and holder data for one mint."""
    mint: str
    decimals: int
    supply: Optional[float]       # human-scaled total supply
    raw_amount: str               # base units, kept as a string (may exceed 2**53)
    ui_amount_string: str
    largest_holders: list[HolderRecord] = field(default_factory=list)
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def last_updated_iso(self) -> str:
        return self.last_updated.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def to_dict(self) -> dict[str, Any]:
        return {
            "mint": self.mint,
            "decimals": self.decimals,
            "supply": self.supply,
            "rawAmount": self.raw_amount,
            "uiAmountString": self.ui_amount_string,
            "largestHolders": [
                {
                    "address": h.address,
                    "owner": h.owner,
                    "amount": h.amount,
                    "decimals": h.decimals,
                }
                for h in self.largest_holders
            ],
            "lastUpdated": self.last_updated_iso,
        }


# ============================================================
# HELPERS
# ============================================================

def normalize_mint(mint: str) -> str:
    """Validate a base58 mint address and return its canonical form."""
    candidate = (mint or "").strip()
    if not candidate:
        raise InvalidMintOrRpcFailure(mint, "mint address is empty")
    try:
        return str(Pubkey.from_string(candidate))
    except ValueError as e:
        raise InvalidMintOrRpcFailure(mint, "mint address is not a valid public key") from e


def _ui_amount(entry: dict[str, Any], decimals: int) -> Optional[float]:
    """Human-scaled amount, falling back to the string form or raw base units."""
    ui_amount = entry.get("uiAmount")
    if ui_amount is not None:
        try:
            return float(ui_amount)
        except (TypeError, ValueError):
            pass
    ui_string = entry.get("uiAmountString")
    if ui_string:
        try:
            return float(ui_string)
        except (TypeError, ValueError):
            pass
    raw = entry.get("amount")
    if raw is None:
        return None
    try:
        return int(raw) / (10 ** decimals)
    except (TypeError, ValueError):
        return None


def _owner_from_account(value: Any) -> Optional[str]:
    if not isinstance(value, dict):
        return None
    data = value.get("data")
    if not isinstance(data, dict):
        return None
    parsed = data.get("parsed")
    if not isinstance(parsed, dict):
        return None
    info = parsed.get("info")
    if not isinstance(info, dict):
        return None
    owner = info.get("owner")
    return owner if isinstance(owner, str) else None


# ============================================================
# BUILDER
# ============================================================

class ChainSnapshotBuilder:
    def __init__(self, rpc: SolanaRPC, config: ChainConfig):
        self._rpc = rpc
        self._config = config

    async def build_snapshot(self, mint_address: str) -> TokenSnapshot:
        mint = normalize_mint(mint_address)

        # A failure in either query cancels the other before the group exits
        try:
            async with asyncio.TaskGroup() as tg:
                supply_task = tg.create_task(self._rpc.get_token_supply(mint))
                largest_task = tg.create_task(self._rpc.get_token_largest_accounts(mint))
        except ExceptionGroup as eg:
            failures = eg.subgroup(RPCError)
            if failures is None:
                raise
            e = failures.exceptions[0]
            logger.warning("snapshot_rpc_failed", mint=mint, method=e.method, error=str(e))
            raise InvalidMintOrRpcFailure(mint, str(e)) from e
        supply, largest = supply_task.result(), largest_task.result()

        try:
            decimals = int(supply["decimals"])
            raw_amount = str(supply["amount"])
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidMintOrRpcFailure(mint, "malformed token supply") from e

        top = [entry for entry in largest[: self._config.top_holders] if isinstance(entry, dict)]
        owners = await asyncio.gather(
            *(self._resolve_owner(entry.get("address")) for entry in top)
        )

        holders = [
            HolderRecord(
                address=str(entry.get("address", "")),
                owner=owner,
                amount=_ui_amount(entry, decimals),
                decimals=decimals,
            )
            for entry, owner in zip(top, owners)
        ]

        snapshot = TokenSnapshot(
            mint=mint,
            decimals=decimals,
            supply=_ui_amount(supply, decimals),
            raw_amount=raw_amount,
            ui_amount_string=str(supply.get("uiAmountString") or ""),
            largest_holders=holders,
            last_updated=datetime.now(timezone.utc),
        )
        logger.info(
            "snapshot_built",
            mint=mint,
            holders=len(holders),
            unresolved=sum(1 for h in holders if h.owner is None),
        )
        return snapshot

    async def _resolve_owner(self, address: Any) -> Optional[str]:
        """Owner of a token account; any failure yields None instead of aborting the snapshot."""
        if not isinstance(address, str) or not address:
            return None
        try:
            account = await self._rpc.get_parsed_account_info(address)
        except RPCError as e:
            logger.warning("holder_owner_unresolved", address=address, error=str(e))
            return None
        return _owner_from_account(account)
