"""
Quote aggregator client.

Translates a desired trade into advisory pricing and, on demand, into an
executable transaction bound to its taker. Upstream problems are returned as
``QuoteFailure`` values rather than raised: thin liquidity is a normal state.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

from ...config import settings
from ...providers.kyberswap import KyberSwapProvider
from ..errors import EngineError, FailureReason
from ..execution.models import Call
from .constants import fee_direction, is_native
from .models import (
    BuildQuote,
    BuildRequest,
    BuildResult,
    FeeDirection,
    PriceQuote,
    PriceRequest,
    PriceResult,
    QuoteBinding,
    QuoteFailure,
)
from .units import to_decimal


logger = logging.getLogger(__name__)


def _to_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


class QuoteAggregatorClient:
    """Pricing and build quotes backed by the KyberSwap aggregator."""

    def __init__(
        self,
        provider: Optional[KyberSwapProvider] = None,
        *,
        fee_bps: Optional[int] = None,
        fee_recipient: Optional[str] = None,
        deadline_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.provider = provider or KyberSwapProvider()
        self.fee_bps = settings.swap_fee_bps if fee_bps is None else fee_bps
        self.fee_recipient = fee_recipient or settings.swap_fee_recipient
        self.deadline_seconds = deadline_seconds or settings.swap_deadline_seconds
        self._clock = clock

    def route_params(self, request: PriceRequest) -> Dict[str, str]:
        """Query parameters for the routes endpoint, fee policy included."""
        params = {
            "tokenIn": request.sell_token,
            "tokenOut": request.buy_token,
            "amountIn": str(request.sell_amount),
            "saveGas": "true",
            "gasInclude": "true",
        }
        direction = fee_direction(request.sell_token, request.buy_token)
        if direction != FeeDirection.NONE and self.fee_bps > 0:
            params.update({
                "feeAmount": str(self.fee_bps),
                "feeReceiver": self.fee_recipient,
                "isInBps": "true",
                "chargeFeeBy": direction.value,
            })
        return params

    async def get_price(self, request: PriceRequest) -> PriceResult:
        """Read-only price quote. Never raises for upstream trouble."""
        if request.sell_amount == 0:
            return PriceQuote.zero()

        try:
            summary = await self.provider.get_route(self.route_params(request))
        except EngineError as e:
            return self._failure("price", e)

        return self._price_quote(request, summary)

    async def get_build_quote(self, request: BuildRequest) -> BuildResult:
        """
        Re-resolve the route and build a transaction for ``request.taker``.

        Either upstream call failing fails the whole operation; no partial
        quote is ever returned.
        """
        if request.sell_amount == 0:
            return QuoteFailure(FailureReason.NO_ROUTE, "Sell amount must be greater than zero")

        try:
            summary = await self.provider.get_route(self.route_params(request))
            deadline = int(self._clock()) + self.deadline_seconds
            built = await self.provider.build_route({
                "routeSummary": summary,
                "sender": request.taker,
                "recipient": request.taker,
                "slippageTolerance": request.slippage_bps,
                "skipSimulateTx": False,
                "deadline": deadline,
            })
            transaction = Call(
                target=built["routerAddress"],
                payload=built["data"],
                value=_to_int(built.get("transactionValue")),
                label="swap",
            )
        except EngineError as e:
            return self._failure("build", e)
        except (KeyError, ValueError) as e:
            logger.warning(f"Malformed build response: {e}")
            return QuoteFailure(FailureReason.UPSTREAM_UNAVAILABLE, f"Malformed build response: {e}")

        price = self._price_quote(request, summary)
        return BuildQuote(
            sell_amount=price.sell_amount,
            buy_amount=price.buy_amount,
            sell_amount_usd=price.sell_amount_usd,
            buy_amount_usd=price.buy_amount_usd,
            estimated_gas=price.estimated_gas or _to_int(built.get("gas")),
            fee_amount=price.fee_amount,
            fee_token=price.fee_token,
            route_summary=summary,
            transaction=transaction,
            binding=QuoteBinding.of(request),
            allowance_spender=None if is_native(request.sell_token) else transaction.target,
            deadline=deadline,
        )

    def _price_quote(self, request: PriceRequest, summary: Dict[str, Any]) -> PriceQuote:
        direction = fee_direction(request.sell_token, request.buy_token)
        fee_token = None
        if direction == FeeDirection.INPUT:
            fee_token = request.sell_token
        elif direction == FeeDirection.OUTPUT:
            fee_token = request.buy_token

        extra_fee = summary.get("extraFee") or {}
        return PriceQuote(
            sell_amount=_to_int(summary.get("amountIn")) or request.sell_amount,
            buy_amount=_to_int(summary.get("amountOut")),
            sell_amount_usd=to_decimal(summary.get("amountInUsd")),
            buy_amount_usd=to_decimal(summary.get("amountOutUsd")),
            estimated_gas=_to_int(summary.get("gas")),
            fee_amount=_to_int(extra_fee.get("feeAmount")),
            fee_token=fee_token,
            route_summary=summary,
        )

    def _failure(self, operation: str, error: EngineError) -> QuoteFailure:
        status_code = getattr(error, "status_code", None)
        if error.reason == FailureReason.NO_ROUTE:
            logger.info(f"No route for {operation} quote: {error.message}")
        else:
            logger.warning(f"Aggregator {operation} quote failed: {error.message}")
        return QuoteFailure(error.reason, error.message, status_code)

    async def close(self) -> None:
        await self.provider.close()
