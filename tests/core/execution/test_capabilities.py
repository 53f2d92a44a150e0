"""
Tests for the CapabilityNegotiator

Path selection (atomic / sequential / direct) and sequential ordering.
"""

import pytest
from unittest.mock import AsyncMock

from launchpad.core.errors import (
    OnChainRevertError,
    PartialBatchFailureError,
    SubmissionError,
    WalletRejectedError,
)
from launchpad.core.execution import (
    CapabilityNegotiator,
    Call,
    Receipt,
    ReceiptStatus,
    SubmissionHandle,
    SubmissionMode,
)
from launchpad.providers.base import WalletProvider
from launchpad.providers.wallet import WalletRpcError


TARGET_A = "0x1111111111111111111111111111111111111111"
TARGET_B = "0x2222222222222222222222222222222222222222"
TARGET_C = "0x4444444444444444444444444444444444444444"


def _handle(tx_hash: str) -> SubmissionHandle:
    return SubmissionHandle(id=tx_hash, mode=SubmissionMode.DIRECT)


def _receipt(tx_hash: str, ok: bool = True) -> Receipt:
    return Receipt(
        status=ReceiptStatus.SUCCESS if ok else ReceiptStatus.REVERTED,
        transaction_hash=tx_hash,
    )


@pytest.fixture
def wallet() -> AsyncMock:
    wallet = AsyncMock(spec=WalletProvider)
    wallet.has_atomic_batch_capability.return_value = False
    return wallet


@pytest.fixture
def three_calls():
    return [Call(TARGET_A, "0x01"), Call(TARGET_B, "0x02"), Call(TARGET_C, "0x03")]


# =============================================================================
# Mode Selection Tests
# =============================================================================

class TestModeSelection:

    @pytest.mark.asyncio
    async def test_single_call_goes_direct_without_capability_query(self, wallet):
        negotiator = CapabilityNegotiator(wallet)

        mode = await negotiator.choose_mode([Call(TARGET_A, value=10)])

        assert mode == SubmissionMode.DIRECT
        wallet.has_atomic_batch_capability.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_atomic_when_advertised(self, wallet, three_calls):
        wallet.has_atomic_batch_capability.return_value = True
        negotiator = CapabilityNegotiator(wallet)

        assert await negotiator.choose_mode(three_calls) == SubmissionMode.ATOMIC

    @pytest.mark.asyncio
    async def test_sequential_when_not_advertised(self, wallet, three_calls):
        negotiator = CapabilityNegotiator(wallet)

        assert await negotiator.choose_mode(three_calls) == SubmissionMode.SEQUENTIAL

    @pytest.mark.asyncio
    async def test_capability_answer_is_cached(self, wallet, three_calls):
        wallet.has_atomic_batch_capability.return_value = True
        negotiator = CapabilityNegotiator(wallet)

        await negotiator.choose_mode(three_calls)
        await negotiator.choose_mode(three_calls)
        assert wallet.has_atomic_batch_capability.await_count == 1

        negotiator.forget_capabilities()
        await negotiator.choose_mode(three_calls)
        assert wallet.has_atomic_batch_capability.await_count == 2

    @pytest.mark.asyncio
    async def test_failed_capability_query_falls_back_uncached(self, wallet, three_calls):
        wallet.has_atomic_batch_capability.side_effect = [RuntimeError("timeout"), True]
        negotiator = CapabilityNegotiator(wallet)

        assert await negotiator.choose_mode(three_calls) == SubmissionMode.SEQUENTIAL
        assert await negotiator.choose_mode(three_calls) == SubmissionMode.ATOMIC

    @pytest.mark.asyncio
    async def test_submit_rejects_empty(self, wallet):
        with pytest.raises(ValueError):
            await CapabilityNegotiator(wallet).submit([])


# =============================================================================
# Submission Tests
# =============================================================================

class TestSubmission:

    @pytest.mark.asyncio
    async def test_atomic_submits_once(self, wallet, three_calls):
        wallet.has_atomic_batch_capability.return_value = True
        wallet.submit_atomic.return_value = SubmissionHandle(id="0xbatch", mode=SubmissionMode.ATOMIC)
        wallet.wait_for_inclusion.return_value = _receipt("0xtx")

        handle = await CapabilityNegotiator(wallet).submit(three_calls)
        receipt = await handle.wait()

        wallet.submit_atomic.assert_awaited_once_with(tuple(three_calls))
        wallet.submit_single.assert_not_awaited()
        assert receipt.identity == "0xbatch"
        assert receipt.completed_calls == 3

    @pytest.mark.asyncio
    async def test_sequential_waits_before_next_submission(self, wallet, three_calls):
        events = []

        async def submit_single(call):
            events.append(("submit", call.target))
            return _handle(f"0x{call.payload[2:]}")

        async def wait_for_inclusion(handle):
            events.append(("mined", handle.id))
            return _receipt(handle.id)

        wallet.submit_single.side_effect = submit_single
        wallet.wait_for_inclusion.side_effect = wait_for_inclusion

        handle = await CapabilityNegotiator(wallet).submit(three_calls)
        receipt = await handle.wait()

        assert events == [
            ("submit", TARGET_A),
            ("mined", "0x01"),
            ("submit", TARGET_B),
            ("mined", "0x02"),
            ("submit", TARGET_C),
            ("mined", "0x03"),
        ]
        assert receipt.identity == "0x03"
        assert receipt.transaction_hashes == ["0x01", "0x02", "0x03"]

    @pytest.mark.asyncio
    async def test_sequential_rejection_after_prefix_is_partial(self, wallet, three_calls):
        wallet.submit_single.side_effect = [_handle("0x01"), WalletRpcError(4001, "User rejected")]
        wallet.wait_for_inclusion.return_value = _receipt("0x01")

        handle = await CapabilityNegotiator(wallet).submit(three_calls)
        with pytest.raises(PartialBatchFailureError) as exc_info:
            await handle.wait()

        error = exc_info.value
        assert error.completed == 1
        assert error.total == 3
        assert isinstance(error.cause, WalletRejectedError)

    @pytest.mark.asyncio
    async def test_sequential_first_revert_is_not_partial(self, wallet, three_calls):
        wallet.submit_single.return_value = _handle("0x01")
        wallet.wait_for_inclusion.return_value = _receipt("0x01", ok=False)

        handle = await CapabilityNegotiator(wallet).submit(three_calls)
        with pytest.raises(OnChainRevertError):
            await handle.wait()
        assert handle.completed == 0

    @pytest.mark.asyncio
    async def test_submission_errors_are_classified(self, wallet):
        wallet.submit_single.side_effect = RuntimeError("nonce too low")

        with pytest.raises(SubmissionError):
            await CapabilityNegotiator(wallet).submit([Call(TARGET_A)])

    @pytest.mark.asyncio
    async def test_direct_revert(self, wallet):
        wallet.submit_single.return_value = _handle("0xdead")
        wallet.wait_for_inclusion.return_value = _receipt("0xdead", ok=False)

        handle = await CapabilityNegotiator(wallet).submit([Call(TARGET_A, value=1)])
        with pytest.raises(OnChainRevertError) as exc_info:
            await handle.wait()
        assert exc_info.value.tx_hash == "0xdead"
