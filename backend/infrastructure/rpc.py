# infrastructure/rpc.py
"""
JSON-RPC transport for EVM nodes.
Posts {jsonrpc, method, params, id} envelopes over HTTPS with httpx.
"""
import itertools
import logging
from typing import Any, List, Optional

import httpx

logger = logging.getLogger("RPC")


class RpcError(Exception):
    """Raised when a JSON-RPC call fails at the transport or node level."""

    def __init__(self, message: str, code: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.url = url


class JsonRpcClient:
    """
    Minimal async JSON-RPC client.

    A fresh ``httpx.AsyncClient`` is opened per call unless a shared client is
    injected (tests pass one built on ``httpx.MockTransport``).
    """

    def __init__(self, timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None):
        self.timeout = timeout
        self._client = client
        self._ids = itertools.count(1)

    async def request(self, rpc_url: str, method: str, params: List[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(self._ids),
        }

        try:
            if self._client is not None:
                response = await self._client.post(rpc_url, json=payload, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(rpc_url, json=payload)
        except httpx.TimeoutException as e:
            raise RpcError(f"RPC call timed out: {method}", url=rpc_url) from e
        except httpx.HTTPError as e:
            raise RpcError(f"RPC request failed: {e}", url=rpc_url) from e

        if response.status_code != 200:
            raise RpcError(
                f"RPC call failed: {response.status_code} {response.reason_phrase}",
                code=response.status_code,
                url=rpc_url,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise RpcError(f"RPC returned invalid JSON: {e}", url=rpc_url) from e

        if not isinstance(data, dict):
            raise RpcError("RPC returned a malformed envelope", url=rpc_url)

        if data.get("error"):
            err = data["error"]
            if isinstance(err, dict):
                raise RpcError(f"RPC error: {err.get('message', 'unknown')}", code=err.get("code"), url=rpc_url)
            raise RpcError(f"RPC error: {err}", url=rpc_url)

        return data.get("result")

    async def eth_call(self, rpc_url: str, to: str, data: str, block: str = "latest") -> str:
        """Read-only contract call; returns the raw hex result."""
        result = await self.request(rpc_url, "eth_call", [{"to": to, "data": data}, block])
        if result is None:
            raise RpcError("RPC returned null result", url=rpc_url)
        return result
