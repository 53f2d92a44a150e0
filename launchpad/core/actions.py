"""
Call planning for user actions.

Every action that spends an ERC-20 first reads the current on-chain
allowance. An approval left behind by a partially failed sequential batch
is therefore detected before the next attempt, and never submitted twice.
"""

import logging
from typing import List, Optional

from ..providers.base import ChainReader
from .errors import QuoteStaleError
from .execution.calls import encode_approve_call
from .execution.models import Call
from .swap.constants import is_native
from .swap.models import BuildQuote, BuildRequest


logger = logging.getLogger(__name__)


class ActionPlanner:
    """Assembles the call list for one logical action."""

    def __init__(self, reader: ChainReader):
        self.reader = reader

    async def needs_approval(self, token: str, owner: str, spender: str, amount: int) -> bool:
        if amount <= 0 or is_native(token):
            return False
        allowance = await self.reader.get_allowance(token, owner, spender)
        logger.debug(f"Allowance of {spender} on {token} for {owner}: {allowance} (need {amount})")
        return allowance < amount

    async def plan_approved_action(
        self,
        token: str,
        spender: str,
        amount: int,
        owner: str,
        action: Call,
    ) -> List[Call]:
        """``[action]`` when the allowance covers ``amount``, else ``[approve, action]``."""
        if await self.needs_approval(token, owner, spender, amount):
            return [encode_approve_call(token, spender, amount), action]
        return [action]

    async def plan_swap(self, quote: BuildQuote, request: BuildRequest, spender: Optional[str] = None) -> List[Call]:
        """Calls for a swap; the quote must still match the request."""
        if quote.consumed or not quote.matches(request):
            raise QuoteStaleError("Quote no longer matches the trade")

        spender = spender or quote.allowance_spender
        if is_native(request.sell_token) or not spender:
            return [quote.transaction]

        return await self.plan_approved_action(
            token=request.sell_token,
            spender=spender,
            amount=request.sell_amount,
            owner=request.taker,
            action=quote.transaction,
        )
