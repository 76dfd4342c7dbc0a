"""
Shared pytest fixtures.

- a real aiosqlite database under tmp_path
- an in-memory Solana JSON-RPC emulator served through httpx.MockTransport
- a scripted AIClient that records every call
"""

from __future__ import annotations

import json
from typing import Any, Optional

import httpx
import pytest

from xiaoyue.ai.client import AIClient, AIResponse
from xiaoyue.chain.rpc import SolanaRPC
from xiaoyue.chain.snapshot import ChainSnapshotBuilder
from xiaoyue.config import AppConfig, ChainConfig, GateConfig, StorageConfig
from xiaoyue.storage.database import Database
from xiaoyue.storage.session_store import SessionStore

WRAPPED_SOL = "So11111111111111111111111111111111111111112"
OTHER_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


class FakeAIClient(AIClient):
    """Returns scripted replies in order (then repeats the last one)."""

    def __init__(self, replies: Optional[list[str]] = None, error: Optional[Exception] = None):
        self.replies = list(replies or ["hi there~"])
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def chat(self, system, messages, model, max_tokens, temperature) -> AIResponse:
        self.calls.append(
            {
                "system": system,
                "messages": [dict(m) for m in messages],
                "model": model,
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        if self.error is not None:
            raise self.error
        text = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        return AIResponse(text=text)


class FakeChain:
    """Minimal Solana JSON-RPC emulator for getTokenSupply / getTokenLargestAccounts / getAccountInfo."""

    def __init__(self) -> None:
        self.supplies: dict[str, dict[str, Any]] = {
            WRAPPED_SOL: {
                "amount": "1500000000000",
                "decimals": 9,
                "uiAmount": 1500.0,
                "uiAmountString": "1500",
            }
        }
        self.largest: dict[str, list[dict[str, Any]]] = {
            WRAPPED_SOL: [
                {
                    "address": f"Holder{i}Account",
                    "amount": str((7 - i) * 10**11),
                    "decimals": 9,
                    "uiAmount": float(7 - i) * 100,
                    "uiAmountString": str((7 - i) * 100),
                }
                for i in range(7)
            ]
        }
        self.owners: dict[str, str] = {f"Holder{i}Account": f"Owner{i}" for i in range(7)}
        self.failing_accounts: set[str] = set()
        self.raw_accounts: dict[str, Any] = {}
        self.fail_methods: set[str] = set()
        self.requests: list[dict[str, Any]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        method, params, rpc_id = body["method"], body["params"], body["id"]

        if method in self.fail_methods:
            return httpx.Response(503, text="unavailable")

        if method == "getTokenSupply":
            supply = self.supplies.get(params[0])
            if supply is None:
                return _rpc_error(rpc_id, -32602, "Invalid param: not a Token mint")
            return _rpc_result(rpc_id, {"context": {"slot": 1}, "value": supply})

        if method == "getTokenLargestAccounts":
            accounts = self.largest.get(params[0])
            if accounts is None:
                return _rpc_error(rpc_id, -32602, "Invalid param: not a Token mint")
            return _rpc_result(rpc_id, {"context": {"slot": 1}, "value": accounts})

        if method == "getAccountInfo":
            address = params[0]
            assert params[1]["encoding"] == "jsonParsed"
            if address in self.failing_accounts:
                return _rpc_error(rpc_id, -32005, "Node is behind")
            if address in self.raw_accounts:
                return _rpc_result(rpc_id, {"context": {"slot": 1}, "value": self.raw_accounts[address]})
            owner = self.owners.get(address)
            if owner is None:
                return _rpc_result(rpc_id, {"context": {"slot": 1}, "value": None})
            value = {
                "data": {
                    "parsed": {"info": {"owner": owner, "mint": WRAPPED_SOL}, "type": "account"},
                    "program": "spl-token",
                },
                "owner": "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA",
            }
            return _rpc_result(rpc_id, {"context": {"slot": 1}, "value": value})

        return _rpc_error(rpc_id, -32601, "Method not found")


def _rpc_result(rpc_id: int, result: Any) -> httpx.Response:
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": rpc_id, "result": result})


def _rpc_error(rpc_id: int, code: int, message: str) -> httpx.Response:
    return httpx.Response(
        200, json={"jsonrpc": "2.0", "id": rpc_id, "error": {"code": code, "message": message}}
    )


@pytest.fixture
def fake_chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def fake_ai() -> FakeAIClient:
    return FakeAIClient()


@pytest.fixture
def http_client(fake_chain: FakeChain) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(fake_chain.handler))


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    return AppConfig(
        storage=StorageConfig(db_path=str(tmp_path / "xiaoyue.db")),
        gate=GateConfig(free_limit=4),
        chain=ChainConfig(rpc_url="https://rpc.test.local", timeout=5),
    )


@pytest.fixture
async def database(app_config: AppConfig):
    db = Database(app_config.storage.db_path)
    await db.initialize()
    yield db
    await db.close()


@pytest.fixture
async def store(database: Database) -> SessionStore:
    return SessionStore(database)


@pytest.fixture
async def rpc(app_config: AppConfig, http_client: httpx.AsyncClient):
    client = SolanaRPC(app_config.chain, client=http_client)
    await client.start()
    yield client
    await http_client.aclose()


@pytest.fixture
def snapshot_builder(rpc: SolanaRPC, app_config: AppConfig) -> ChainSnapshotBuilder:
    return ChainSnapshotBuilder(rpc, app_config.chain)

