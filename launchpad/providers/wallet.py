"""
EIP-5792 wallet provider over JSON-RPC.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx

from .base import Provider, WalletProvider
from ..config import settings
from ..core.errors import UpstreamUnavailableError
from ..core.execution.models import (
    Call,
    Receipt,
    ReceiptStatus,
    SubmissionHandle,
    SubmissionMode,
)


logger = logging.getLogger(__name__)

# wallet_getCallsStatus numeric codes (EIP-5792 v2)
CALLS_STATUS_PENDING = 100
CALLS_STATUS_CONFIRMED = 200
CALLS_STATUS_OFFCHAIN_FAILURE = 400
CALLS_STATUS_REVERTED = 500
CALLS_STATUS_PARTIAL_REVERTED = 600

# v1 wallets report strings instead of codes
_LEGACY_STATUS = {
    "PENDING": CALLS_STATUS_PENDING,
    "CONFIRMED": CALLS_STATUS_CONFIRMED,
    "pending": CALLS_STATUS_PENDING,
    "success": CALLS_STATUS_CONFIRMED,
    "failure": CALLS_STATUS_REVERTED,
}


class WalletRpcError(Exception):
    """JSON-RPC error returned by the wallet."""

    def __init__(self, code: Optional[int], message: str, data: Any = None):
        super().__init__(message)
        self.code = code
        self.data = data


class InclusionTimeoutError(Exception):
    """Gave up waiting for a submission to be included."""


@dataclass
class WalletConfig:
    rpc_url: str
    account: str
    chain_id: int = settings.chain_id
    calls_status_poll_seconds: float = settings.calls_status_poll_seconds
    receipt_poll_seconds: float = settings.receipt_poll_seconds
    inclusion_timeout_seconds: float = settings.inclusion_timeout_seconds


def capabilities_support_atomic(capabilities: Dict[str, Any], chain_id: int) -> bool:
    """Read atomic batch support out of a wallet_getCapabilities result.

    Only an explicit advertisement counts; a wallet that merely returns some
    capabilities for the chain is not assumed to batch.
    """
    if not isinstance(capabilities, dict):
        return False
    chain_caps = capabilities.get(hex(chain_id)) or capabilities.get(str(chain_id)) or {}
    if not isinstance(chain_caps, dict):
        return False

    atomic = chain_caps.get("atomic")
    if isinstance(atomic, dict) and atomic.get("status") in ("supported", "ready"):
        return True

    atomic_batch = chain_caps.get("atomicBatch")
    return isinstance(atomic_batch, dict) and atomic_batch.get("supported") is True


class JsonRpcWalletProvider(WalletProvider, Provider):
    """Talks to a wallet that exposes the EIP-1193 / EIP-5792 methods over HTTP."""

    name = "wallet"
    timeout_s = 30

    def __init__(self, config: WalletConfig, client: Optional[httpx.AsyncClient] = None) -> None:
        self._config = config
        self._client = client
        self._sleep = asyncio.sleep

    @property
    def account(self) -> str:
        return self._config.account

    async def ready(self) -> bool:
        return bool(self._config.rpc_url and self._config.account)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "unavailable", "reason": "Wallet not configured"}
        try:
            result = await self._rpc_call("eth_chainId", [])
            return {"status": "healthy", "chainId": result}
        except Exception as exc:
            return {"status": "error", "reason": str(exc)}

    async def has_atomic_batch_capability(self) -> bool:
        try:
            capabilities = await self._rpc_call(
                "wallet_getCapabilities",
                [self._config.account, [hex(self._config.chain_id)]],
            )
        except WalletRpcError as exc:
            # Method missing entirely means no EIP-5792 support
            logger.info(f"wallet_getCapabilities unavailable: {exc}")
            return False
        return capabilities_support_atomic(capabilities or {}, self._config.chain_id)

    async def submit_atomic(self, calls: Sequence[Call]) -> SubmissionHandle:
        result = await self._rpc_call(
            "wallet_sendCalls",
            [
                {
                    "version": "2.0.0",
                    "chainId": hex(self._config.chain_id),
                    "from": self._config.account,
                    "atomicRequired": True,
                    "calls": [call.to_rpc() for call in calls],
                }
            ],
        )
        batch_id = result.get("id") if isinstance(result, dict) else result
        if not isinstance(batch_id, str) or not batch_id:
            raise WalletRpcError(None, "Invalid wallet response for wallet_sendCalls", result)
        return SubmissionHandle(id=batch_id, mode=SubmissionMode.ATOMIC)

    async def submit_single(self, call: Call) -> SubmissionHandle:
        tx = {
            "from": self._config.account,
            "chainId": hex(self._config.chain_id),
            **call.to_rpc(),
        }
        tx_hash = await self._rpc_call("eth_sendTransaction", [tx])
        if not isinstance(tx_hash, str):
            raise WalletRpcError(None, "Invalid wallet response for eth_sendTransaction", tx_hash)
        return SubmissionHandle(id=tx_hash, mode=SubmissionMode.DIRECT)

    async def wait_for_inclusion(self, handle: SubmissionHandle) -> Receipt:
        if handle.mode == SubmissionMode.ATOMIC:
            return await self._wait_for_calls(handle.id)
        return await self._wait_for_receipt(handle.id)

    async def _wait_for_calls(self, batch_id: str) -> Receipt:
        deadline = time.monotonic() + self._config.inclusion_timeout_seconds
        while True:
            status = await self._rpc_call("wallet_getCallsStatus", [batch_id])
            code = self._status_code(status)
            if code is not None and code >= CALLS_STATUS_CONFIRMED:
                receipts: List[Dict[str, Any]] = (status or {}).get("receipts") or []
                last = receipts[-1] if receipts else {}
                ok = code == CALLS_STATUS_CONFIRMED and all(
                    r.get("status") in ("0x1", 1, "success") for r in receipts
                )
                return Receipt(
                    status=ReceiptStatus.SUCCESS if ok else ReceiptStatus.REVERTED,
                    transaction_hash=last.get("transactionHash"),
                    block_number=_hex_to_int(last.get("blockNumber")),
                )
            if time.monotonic() > deadline:
                raise InclusionTimeoutError(f"Batch {batch_id} not included after {self._config.inclusion_timeout_seconds}s")
            await self._sleep(self._config.calls_status_poll_seconds)

    async def _wait_for_receipt(self, tx_hash: str) -> Receipt:
        deadline = time.monotonic() + self._config.inclusion_timeout_seconds
        while True:
            receipt = await self._rpc_call("eth_getTransactionReceipt", [tx_hash])
            if receipt:
                status = int(receipt.get("status", "0x1"), 16)
                return Receipt(
                    status=ReceiptStatus.SUCCESS if status == 1 else ReceiptStatus.REVERTED,
                    transaction_hash=tx_hash,
                    block_number=_hex_to_int(receipt.get("blockNumber")),
                )
            if time.monotonic() > deadline:
                raise InclusionTimeoutError(f"Transaction {tx_hash} not included after {self._config.inclusion_timeout_seconds}s")
            await self._sleep(self._config.receipt_poll_seconds)

    @staticmethod
    def _status_code(status: Any) -> Optional[int]:
        if not isinstance(status, dict):
            return None
        raw = status.get("status")
        if isinstance(raw, int):
            return raw
        return _LEGACY_STATUS.get(str(raw))

    async def _rpc_call(self, method: str, params: list[Any]) -> Any:
        if not self._client or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout_s)

        try:
            response = await self._client.post(
                self._config.rpc_url,
                json={"jsonrpc": "2.0", "id": 1, "method": method, "params": params},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise UpstreamUnavailableError(f"Wallet RPC {method} failed: {exc}", provider=self.name) from exc

        payload = response.json()
        if "error" in payload:
            error = payload["error"] or {}
            raise WalletRpcError(error.get("code"), error.get("message", "Wallet RPC error"), error.get("data"))
        return payload.get("result")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()


def _hex_to_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int):
        return value
    return int(value, 16)
