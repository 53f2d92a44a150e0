"""Read-only JSON-RPC access to the chain."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from .base import ChainReader, Provider
from ..config import settings
from ..core.errors import UpstreamUnavailableError
from ..core.execution.models import Call


class RpcChainReader(ChainReader, Provider):
    name = "rpc"
    timeout_s = 15

    def __init__(self, rpc_url: Optional[str] = None, client: Optional[httpx.AsyncClient] = None) -> None:
        self.rpc_url = rpc_url or settings.rpc_url
        self._client = client

    async def ready(self) -> bool:
        return bool(self.rpc_url)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "unavailable", "reason": "RPC not configured"}
        try:
            block = await self._rpc_call("eth_blockNumber", [])
            return {"status": "healthy", "block": int(block, 16)}
        except Exception as e:
            return {"status": "error", "reason": str(e)}

    async def call(self, call: Call, block: str = "latest") -> str:
        return await self._rpc_call(
            "eth_call",
            [{"to": call.target, "data": call.payload}, block],
        )

    async def _rpc_call(self, method: str, params: List[Any]) -> Any:
        if not self._client or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout_s)

        try:
            response = await self._client.post(
                self.rpc_url,
                json={"jsonrpc": "2.0", "id": 1, "method": method, "params": params},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise UpstreamUnavailableError(f"RPC {method} failed: {exc}", provider=self.name) from exc

        result = response.json()
        if "error" in result:
            raise UpstreamUnavailableError(f"RPC error: {result['error']}", provider=self.name)
        return result.get("result")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
