"""Minimal async Solana JSON-RPC client over httpx."""

from __future__ import annotations

import itertools
from typing import Any, Optional

import httpx

from xiaoyue.config import ChainConfig
from xiaoyue.log import get_logger

logger = get_logger(__name__)


class RPCError(Exception):
    """Transport failure, timeout, JSON-RPC error object or malformed envelope."""

    def __init__(self, method: str, message: str, code: Optional[int] = None):
        super().__init__(f"{method}: {message}")
        self.method = method
        self.code = code


class SolanaRPC:
    """Thin JSON-RPC wrapper exposing the calls the snapshot builder needs."""

    def __init__(self, config: ChainConfig, client: httpx.AsyncClient | None = None):
        self._config = config
        self._client = client
        self._owns_client = client is None
        self._ids = itertools.count(1)

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._config.timeout)
            self._owns_client = True

    async def stop(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("SolanaRPC not started. Call start() first.")
        return self._client

    async def call(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            response = await self.client.post(
                self._config.rpc_url, json=payload, timeout=self._config.timeout
            )
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as e:
            raise RPCError(method, f"timed out after {self._config.timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise RPCError(method, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise RPCError(method, f"transport error: {e}") from e
        except ValueError as e:
            raise RPCError(method, "response is not valid JSON") from e

        if not isinstance(body, dict):
            raise RPCError(method, "unexpected response envelope")
        if body.get("error"):
            error = body["error"]
            if isinstance(error, dict):
                raise RPCError(method, str(error.get("message", "unknown error")), error.get("code"))
            raise RPCError(method, str(error))
        if "result" not in body:
            raise RPCError(method, "response has no result")
        return body["result"]

    async def get_token_supply(self, mint: str) -> dict[str, Any]:
        """Returns ``{amount, decimals, uiAmount, uiAmountString}``."""
        result = await self.call("getTokenSupply", [mint, {"commitment": self._config.commitment}])
        return _value(result, "getTokenSupply", dict)

    async def get_token_largest_accounts(self, mint: str) -> list[dict[str, Any]]:
        """Largest token accounts for the mint, largest first."""
        result = await self.call(
            "getTokenLargestAccounts", [mint, {"commitment": self._config.commitment}]
        )
        return _value(result, "getTokenLargestAccounts", list)

    async def get_parsed_account_info(self, address: str) -> Optional[dict[str, Any]]:
        result = await self.call(
            "getAccountInfo",
            [address, {"encoding": "jsonParsed", "commitment": self._config.commitment}],
        )
        if not isinstance(result, dict):
            raise RPCError("getAccountInfo", "unexpected result shape")
        value = result.get("value")
        if value is not None and not isinstance(value, dict):
            raise RPCError("getAccountInfo", "unexpected account shape")
        return value


def _value(result: Any, method: str, expected: type) -> Any:
    if not isinstance(result, dict) or not isinstance(result.get("value"), expected):
        raise RPCError(method, "unexpected result shape")
    return result["value"]
