from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..core.errors import FailureReason
from ..core.swap.models import BuildRequest, PriceRequest, QuoteFailure
from ..core.swap.quotes import QuoteAggregatorClient
from ..core.swap.slippage import SlippageEstimate, SlippageEstimator
from ..services.prices import PriceService, get_price_service


router = APIRouter(prefix="/api/swap")

# Singleton instances
_quote_client: Optional[QuoteAggregatorClient] = None
_slippage_estimator: Optional[SlippageEstimator] = None


def get_quote_client() -> QuoteAggregatorClient:
    """Get the shared QuoteAggregatorClient."""
    global _quote_client
    if _quote_client is None:
        _quote_client = QuoteAggregatorClient()
    return _quote_client


def get_slippage_estimator() -> SlippageEstimator:
    global _slippage_estimator
    if _slippage_estimator is None:
        _slippage_estimator = SlippageEstimator()
    return _slippage_estimator


def _price_request(sell_token: Optional[str], buy_token: Optional[str], sell_amount: Optional[str]) -> PriceRequest:
    if not sell_token or not buy_token or not sell_amount:
        raise HTTPException(
            status_code=400,
            detail="Missing required parameters: sellToken, buyToken, sellAmount",
        )
    try:
        return PriceRequest(sell_token=sell_token, buy_token=buy_token, sell_amount=int(sell_amount))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _slippage_dict(estimate: SlippageEstimate) -> Dict[str, Any]:
    return {
        "slippageBps": estimate.slippage_bps,
        "priceImpact": str(estimate.price_impact) if estimate.price_impact is not None else None,
        "source": estimate.source,
    }


def _raise_for_failure(failure: QuoteFailure, operation: str) -> None:
    if failure.reason == FailureReason.NO_ROUTE:
        raise HTTPException(status_code=404, detail=failure.message or "No route found")
    raise HTTPException(
        status_code=502,
        detail=failure.message or f"Failed to fetch {operation} from KyberSwap",
    )


@router.get("/price")
async def get_swap_price(
    sell_token: Optional[str] = Query(default=None, alias="sellToken"),
    buy_token: Optional[str] = Query(default=None, alias="buyToken"),
    sell_amount: Optional[str] = Query(default=None, alias="sellAmount"),
    client: QuoteAggregatorClient = Depends(get_quote_client),
    prices: PriceService = Depends(get_price_service),
) -> Dict[str, Any]:
    """Indicative price for a trade plus its auto slippage; no transaction is built."""
    request = _price_request(sell_token, buy_token, sell_amount)
    result = await client.get_price(request)
    if isinstance(result, QuoteFailure):
        _raise_for_failure(result, "price")

    estimate = await prices.estimate_slippage(get_slippage_estimator(), result, request)
    body = result.to_dict()
    body["slippage"] = _slippage_dict(estimate)
    body["routeSummary"] = result.route_summary
    return body


@router.get("/quote")
async def get_swap_quote(
    sell_token: Optional[str] = Query(default=None, alias="sellToken"),
    buy_token: Optional[str] = Query(default=None, alias="buyToken"),
    sell_amount: Optional[str] = Query(default=None, alias="sellAmount"),
    taker: Optional[str] = Query(default=None),
    slippage_bps: Optional[int] = Query(default=None, alias="slippageBps", ge=0, le=10_000),
    client: QuoteAggregatorClient = Depends(get_quote_client),
    prices: PriceService = Depends(get_price_service),
) -> Dict[str, Any]:
    """Build quote: an executable transaction bound to ``taker``.

    Without ``slippageBps`` the tolerance is derived from the price impact
    of a fresh price quote.
    """
    price_request = _price_request(sell_token, buy_token, sell_amount)
    if not taker:
        raise HTTPException(status_code=400, detail="Missing required parameter: taker (wallet address)")

    if slippage_bps is None:
        price = await client.get_price(price_request)
        if isinstance(price, QuoteFailure):
            _raise_for_failure(price, "quote")
        estimate = await prices.estimate_slippage(get_slippage_estimator(), price, price_request)
        slippage_bps = estimate.slippage_bps

    try:
        request = BuildRequest.for_price(price_request, slippage_bps=slippage_bps, taker=taker)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    result = await client.get_build_quote(request)
    if isinstance(result, QuoteFailure):
        _raise_for_failure(result, "quote")
    body = result.to_dict()
    body["slippageBps"] = request.slippage_bps
    return body
