"""Tests for the EIP-5792 JSON-RPC wallet provider."""

import json

import httpx
import pytest

from launchpad.core.errors import UpstreamUnavailableError
from launchpad.core.execution import Call, ReceiptStatus, SubmissionHandle, SubmissionMode
from launchpad.providers.wallet import (
    InclusionTimeoutError,
    JsonRpcWalletProvider,
    WalletConfig,
    WalletRpcError,
    capabilities_support_atomic,
)


ACCOUNT = "0x5555555555555555555555555555555555555555"
TARGET = "0x1111111111111111111111111111111111111111"
BASE_CHAIN = "0x2105"


def make_provider(handler, **config):
    """Wallet provider backed by an httpx.MockTransport handler(method, params)."""
    requests = []

    def transport(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        requests.append(body)
        result = handler(body["method"], body["params"])
        if isinstance(result, dict) and "error" in result:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], **result})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    client = httpx.AsyncClient(transport=httpx.MockTransport(transport))
    provider = JsonRpcWalletProvider(
        WalletConfig(rpc_url="http://wallet.test", account=ACCOUNT, chain_id=8453, **config),
        client=client,
    )

    async def no_sleep(_seconds):
        return None

    provider._sleep = no_sleep
    return provider, requests


# =============================================================================
# Capability Tests
# =============================================================================

class TestCapabilities:

    @pytest.mark.parametrize("caps,expected", [
        ({BASE_CHAIN: {"atomic": {"status": "supported"}}}, True),
        ({BASE_CHAIN: {"atomic": {"status": "ready"}}}, True),
        ({BASE_CHAIN: {"atomic": {"status": "unsupported"}}}, False),
        ({BASE_CHAIN: {"atomicBatch": {"supported": True}}}, True),
        ({BASE_CHAIN: {"paymasterService": {"supported": True}}}, False),
        ({"0x1": {"atomic": {"status": "supported"}}}, False),
        ({}, False),
    ])
    def test_capabilities_support_atomic(self, caps, expected):
        assert capabilities_support_atomic(caps, 8453) is expected

    @pytest.mark.asyncio
    async def test_query_uses_account_and_chain(self):
        provider, requests = make_provider(
            lambda method, params: {BASE_CHAIN: {"atomic": {"status": "supported"}}}
        )

        assert await provider.has_atomic_batch_capability() is True
        assert requests[0]["method"] == "wallet_getCapabilities"
        assert requests[0]["params"] == [ACCOUNT, [BASE_CHAIN]]

    @pytest.mark.asyncio
    async def test_missing_method_means_no_atomic_support(self):
        provider, _ = make_provider(
            lambda method, params: {"error": {"code": -32601, "message": "Method not found"}}
        )

        assert await provider.has_atomic_batch_capability() is False


# =============================================================================
# Submission Tests
# =============================================================================

class TestSubmission:

    @pytest.mark.asyncio
    async def test_submit_atomic(self):
        provider, requests = make_provider(lambda method, params: {"id": "0xbatch"})
        calls = [Call(TARGET, "0x01"), Call(TARGET, "0x02", value=5)]

        handle = await provider.submit_atomic(calls)

        assert handle == SubmissionHandle(id="0xbatch", mode=SubmissionMode.ATOMIC)
        payload = requests[0]["params"][0]
        assert requests[0]["method"] == "wallet_sendCalls"
        assert payload["version"] == "2.0.0"
        assert payload["atomicRequired"] is True
        assert payload["chainId"] == BASE_CHAIN
        assert payload["calls"][1] == {"to": TARGET, "data": "0x02", "value": "0x5"}

    @pytest.mark.asyncio
    async def test_user_rejection_keeps_code(self):
        provider, _ = make_provider(
            lambda method, params: {"error": {"code": 4001, "message": "User rejected the request."}}
        )

        with pytest.raises(WalletRpcError) as exc_info:
            await provider.submit_single(Call(TARGET))
        assert exc_info.value.code == 4001

    @pytest.mark.asyncio
    async def test_transport_failure_is_upstream_unavailable(self):
        def transport(request):
            raise httpx.ConnectError("refused", request=request)

        provider = JsonRpcWalletProvider(
            WalletConfig(rpc_url="http://wallet.test", account=ACCOUNT),
            client=httpx.AsyncClient(transport=httpx.MockTransport(transport)),
        )

        with pytest.raises(UpstreamUnavailableError):
            await provider.submit_single(Call(TARGET))


# =============================================================================
# Inclusion Tests
# =============================================================================

class TestInclusion:

    @pytest.mark.asyncio
    async def test_polls_calls_status_until_confirmed(self):
        statuses = iter([
            {"status": 100},
            {"status": 200, "receipts": [{"status": "0x1", "transactionHash": "0xtx", "blockNumber": "0x10"}]},
        ])
        provider, requests = make_provider(lambda method, params: next(statuses))

        receipt = await provider.wait_for_inclusion(SubmissionHandle(id="0xbatch", mode=SubmissionMode.ATOMIC))

        assert receipt.status == ReceiptStatus.SUCCESS
        assert receipt.transaction_hash == "0xtx"
        assert receipt.block_number == 16
        assert [r["method"] for r in requests] == ["wallet_getCallsStatus"] * 2

    @pytest.mark.asyncio
    async def test_batch_revert(self):
        provider, _ = make_provider(
            lambda method, params: {"status": 500, "receipts": [{"status": "0x0", "transactionHash": "0xtx"}]}
        )

        receipt = await provider.wait_for_inclusion(SubmissionHandle(id="0xbatch", mode=SubmissionMode.ATOMIC))
        assert receipt.status == ReceiptStatus.REVERTED

    @pytest.mark.asyncio
    async def test_legacy_string_status(self):
        provider, _ = make_provider(
            lambda method, params: {"status": "CONFIRMED", "receipts": [{"status": "0x1", "transactionHash": "0xtx"}]}
        )

        receipt = await provider.wait_for_inclusion(SubmissionHandle(id="0xbatch", mode=SubmissionMode.ATOMIC))
        assert receipt.is_success

    @pytest.mark.asyncio
    async def test_transaction_receipt(self):
        receipts = iter([None, {"status": "0x0", "blockNumber": "0x2"}])
        provider, _ = make_provider(lambda method, params: next(receipts))

        receipt = await provider.wait_for_inclusion(SubmissionHandle(id="0xabc", mode=SubmissionMode.DIRECT))

        assert receipt.status == ReceiptStatus.REVERTED
        assert receipt.transaction_hash == "0xabc"

    @pytest.mark.asyncio
    async def test_inclusion_timeout(self):
        provider, _ = make_provider(lambda method, params: None, inclusion_timeout_seconds=0)

        with pytest.raises(InclusionTimeoutError):
            await provider.wait_for_inclusion(SubmissionHandle(id="0xabc", mode=SubmissionMode.DIRECT))
