"""Async JSON-RPC client for an Ethereum-compatible node.

Used by the calling boundary to decide whether a caller carries code
(``eth_getCode``). A contract still inside its constructor has no code yet
and is reported as an external account.
"""

from __future__ import annotations

import itertools
from typing import Any

import httpx

from tiermint.guard import CallerContext
from tiermint.units import normalize_address


# ---------------------------------------------------------------------------
# Exception hierarchy
# ---------------------------------------------------------------------------


class RpcError(Exception):
    """Base exception for node RPC operations."""

    def __init__(
        self, message: str, status_code: int | None = None, code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class RpcConnectionError(RpcError):
    """Network/DNS failure (retryable)."""


class RpcTimeoutError(RpcError):
    """Request timeout (retryable)."""


class RpcServerError(RpcError):
    """HTTP error status from the node."""


class RpcResponseError(RpcError):
    """The node answered with a JSON-RPC ``error`` object or a malformed body."""


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class RpcClient:
    """Async client for the handful of node methods the ledger boundary needs.

    Constructor accepts explicit params, no env-var loading.
    """

    def __init__(self, url: str) -> None:
        self._url = url
        self._ids = itertools.count(1)
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(connect=5.0, read=15.0, write=10.0, pool=5.0),
        )

    # -- internal request dispatcher -----------------------------------------

    async def _call(self, method: str, params: list[Any] | None = None) -> Any:
        """Send one JSON-RPC request and map failures to the RpcError hierarchy."""
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        try:
            response = await self._client.post(self._url, json=payload)
        except httpx.ConnectError as exc:
            raise RpcConnectionError(str(exc)) from exc
        except httpx.TimeoutException as exc:
            raise RpcTimeoutError(str(exc)) from exc

        if response.status_code >= 400:
            raise RpcServerError(response.text, status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as exc:
            raise RpcResponseError(f"non-JSON response: {response.text[:200]}") from exc
        if not isinstance(body, dict):
            raise RpcResponseError(f"unexpected response: {body!r}")

        error = body.get("error")
        if error:
            message = error.get("message", "unknown error") if isinstance(error, dict) else str(error)
            code = error.get("code") if isinstance(error, dict) else None
            raise RpcResponseError(message, code=code)
        if "result" not in body:
            raise RpcResponseError("response has neither result nor error")
        return body["result"]

    # -- public API methods ---------------------------------------------------

    async def chain_id(self) -> int:
        """eth_chainId: numeric chain id."""
        return int(await self._call("eth_chainId"), 16)

    async def block_number(self) -> int:
        """eth_blockNumber: latest block height."""
        return int(await self._call("eth_blockNumber"), 16)

    async def get_code(self, address: str, block: str = "latest") -> str:
        """eth_getCode: hex bytecode at ``address`` (``"0x"`` when none)."""
        return await self._call("eth_getCode", [normalize_address(address), block])

    async def has_code(self, address: str) -> bool:
        code = await self.get_code(address)
        return bool(code) and code not in ("0x", "0x0")

    async def caller_context(self, address: str) -> CallerContext:
        """Build the guard's caller context from on-chain code presence."""
        return CallerContext(address=address, has_code=await self.has_code(address))

    # -- lifecycle ------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> RpcClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
