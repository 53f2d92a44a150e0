"""Executes build quotes, each at most once."""

import asyncio
import logging
from typing import Optional

from ..actions import ActionPlanner
from ..execution.batch_executor import BatchExecutor
from ..execution.models import BatchOutcome
from .models import BuildQuote, BuildRequest


logger = logging.getLogger(__name__)


def swap_broadcast(quote: BuildQuote, outcome: Optional[BatchOutcome]) -> bool:
    """Whether the quote's transaction may have reached the chain."""
    if outcome is None:
        return False
    if outcome.abandoned:
        return True
    return outcome.submitted and quote.transaction not in outcome.remaining_calls


class SwapRunner:
    """
    Runs a swap through its own BatchExecutor.

    The quote is claimed for the duration of one attempt. Once its
    transaction may have reached the chain the quote is consumed and a new
    one must be fetched. An attempt that stopped before the swap itself was
    broadcast (rejected, or only the approval landed) gives the quote back.
    """

    def __init__(self, executor: BatchExecutor, planner: ActionPlanner):
        self.executor = executor
        self.planner = planner

    async def execute(self, quote: BuildQuote, request: BuildRequest) -> BatchOutcome:
        """
        Raises:
            QuoteStaleError: the quote does not match ``request`` or was already used
            InvalidBatchTransitionError: the executor is still busy with another attempt
        """
        quote.claim(request)
        outcome: Optional[BatchOutcome] = None
        executing = False
        try:
            calls = await self.planner.plan_swap(quote, request)
            executing = True
            outcome = await self.executor.execute(calls)
        except asyncio.CancelledError:
            if executing:
                # Broadcasts cannot be recalled
                quote.mark_consumed()
            raise
        finally:
            if not quote.consumed:
                if swap_broadcast(quote, outcome):
                    quote.mark_consumed()
                else:
                    quote.release()

        logger.info(f"Swap {request.sell_token} -> {request.buy_token} finished: {outcome.state.value}")
        return outcome
