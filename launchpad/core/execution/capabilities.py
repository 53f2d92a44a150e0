"""
Capability negotiation between the engine and the connected wallet.

One ``submit(calls)`` operation covers three paths:

- atomic: the wallet advertises EIP-5792 atomic batching, all calls apply or none do
- sequential: one transaction per call, each submitted only after the previous
  one is included; not atomic, so a stopped sequence reports its applied prefix
- direct: a single call needs no batching at all (e.g. native-asset spends)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Sequence

from ..errors import (
    EngineError,
    OnChainRevertError,
    PartialBatchFailureError,
    classify_error,
)
from .models import BatchReceipt, Call, SubmissionHandle, SubmissionMode

if TYPE_CHECKING:
    from ...providers.base import WalletProvider


logger = logging.getLogger(__name__)


@dataclass
class BatchHandle:
    """A submission that has reached the wallet and is now on its way on-chain.

    Returned by ``CapabilityNegotiator.submit`` as soon as the first
    broadcast is accepted; ``wait()`` suspends until the whole sequence is
    included. In sequential mode the remaining calls are submitted from
    within ``wait()``, strictly in order.
    """

    wallet: WalletProvider
    mode: SubmissionMode
    calls: Sequence[Call]
    first: SubmissionHandle
    transaction_hashes: List[str] = field(default_factory=list)
    completed: int = 0

    @property
    def identity(self) -> str:
        """Current TransactionIdentity: batch id, or the latest transaction hash."""
        if self.mode == SubmissionMode.ATOMIC:
            return self.first.id
        return self.transaction_hashes[-1] if self.transaction_hashes else self.first.id

    async def wait(self) -> BatchReceipt:
        if self.mode == SubmissionMode.SEQUENTIAL:
            return await self._wait_sequential()

        receipt = await self.wallet.wait_for_inclusion(self.first)
        if receipt.transaction_hash:
            self.transaction_hashes.append(receipt.transaction_hash)
        if not receipt.is_success:
            raise OnChainRevertError(
                f"{self.mode.value} submission {self.first.id} reverted",
                tx_hash=receipt.transaction_hash,
            )
        self.completed = len(self.calls)
        return BatchReceipt(
            identity=self.identity,
            mode=self.mode,
            completed_calls=self.completed,
            transaction_hashes=list(self.transaction_hashes),
        )

    async def _wait_sequential(self) -> BatchReceipt:
        handle: Optional[SubmissionHandle] = self.first
        self.transaction_hashes.append(self.first.id)

        for index in range(len(self.calls)):
            try:
                if handle is None:
                    handle = await self.wallet.submit_single(self.calls[index])
                    self.transaction_hashes.append(handle.id)
                    logger.info(f"Sequential call {index + 1}/{len(self.calls)} submitted: {handle.id}")

                receipt = await self.wallet.wait_for_inclusion(handle)
                if not receipt.is_success:
                    raise OnChainRevertError(
                        f"Call {index + 1}/{len(self.calls)} reverted",
                        tx_hash=receipt.transaction_hash or handle.id,
                    )
            except Exception as exc:
                raise self._stop(index, classify_error(exc)) from exc

            self.completed = index + 1
            handle = None

        return BatchReceipt(
            identity=self.identity,
            mode=self.mode,
            completed_calls=self.completed,
            transaction_hashes=list(self.transaction_hashes),
        )

    def _stop(self, index: int, cause: EngineError) -> EngineError:
        if self.completed == 0:
            return cause
        return PartialBatchFailureError(
            f"Sequential batch stopped at call {index + 1}/{len(self.calls)}: {cause.message}",
            completed=self.completed,
            total=len(self.calls),
            submitted=len(self.transaction_hashes),
            transaction_hashes=self.transaction_hashes,
            cause=cause,
        )


class CapabilityNegotiator:
    """Chooses how a list of calls reaches the chain for one wallet."""

    def __init__(self, wallet: WalletProvider):
        self.wallet = wallet
        self._atomic_supported: Optional[bool] = None

    async def supports_atomic(self) -> bool:
        """Explicit, side-effect-free capability query, cached per negotiator."""
        if self._atomic_supported is None:
            try:
                self._atomic_supported = bool(await self.wallet.has_atomic_batch_capability())
            except Exception as e:
                # Not cached: a flaky query must not pin the wallet to sequential mode
                logger.warning(f"Capability query failed, using sequential submission: {e}")
                return False
            logger.info(f"Wallet atomic batching supported: {self._atomic_supported}")
        return self._atomic_supported

    def forget_capabilities(self) -> None:
        """Drop the cached capability answer (e.g. after the wallet changes)."""
        self._atomic_supported = None

    async def choose_mode(self, calls: Sequence[Call]) -> SubmissionMode:
        if len(calls) == 1:
            return SubmissionMode.DIRECT
        if await self.supports_atomic():
            return SubmissionMode.ATOMIC
        return SubmissionMode.SEQUENTIAL

    async def submit(self, calls: Sequence[Call]) -> BatchHandle:
        """Put the calls in front of the wallet.

        Returns once the first broadcast has been accepted. Raises a
        structured EngineError if the wallet refuses or fails the request.
        """
        if not calls:
            raise ValueError("submit() requires at least one call")

        calls = tuple(calls)
        mode = await self.choose_mode(calls)

        try:
            if mode == SubmissionMode.ATOMIC:
                first = await self.wallet.submit_atomic(calls)
            else:
                first = await self.wallet.submit_single(calls[0])
        except Exception as exc:
            raise classify_error(exc) from exc

        logger.info(f"Submitted {len(calls)} call(s) in {mode.value} mode: {first.id}")
        return BatchHandle(wallet=self.wallet, mode=mode, calls=calls, first=first)
