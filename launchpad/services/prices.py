"""USD reference prices for the native asset and the protocol token, and the
local valuation they feed into auto slippage."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, Optional

from ..cache import PriceCache
from ..config import settings
from ..core.errors import UpstreamUnavailableError
from ..core.swap.constants import is_native
from ..core.swap.models import PriceQuote, PriceRequest
from ..core.swap.slippage import SlippageEstimate, SlippageEstimator, TokenPricing, quoted_unit_price_usd
from ..providers.base import PriceProvider
from ..providers.coingecko import CoingeckoProvider

logger = logging.getLogger(__name__)

ETH_COIN_ID = "ethereum"
DONUT_COIN_ID = "donut-2"


class PriceService:
    """
    Serves ETH and DONUT USD prices through a shared PriceCache.

    Resolution order: fresh cache entry, upstream fetch, last cached value
    (however old), configured default. Callers always get a price.
    """

    def __init__(
        self,
        cache: PriceCache,
        provider: Optional[PriceProvider] = None,
        defaults: Optional[Dict[str, Decimal]] = None,
    ):
        self.cache = cache
        self.provider = provider or CoingeckoProvider()
        self.defaults = defaults or {
            ETH_COIN_ID: settings.default_eth_price_usd,
            DONUT_COIN_ID: settings.default_donut_price_usd,
        }

    async def get_usd_price(self, coin_id: str) -> Decimal:
        async def fetch() -> Decimal:
            prices = await self.provider.get_usd_prices([coin_id])
            price = prices.get(coin_id)
            if price is None or price <= 0:
                raise UpstreamUnavailableError(f"No USD price for {coin_id}", provider=self.provider.name)
            return price

        try:
            return await self.cache.get_or_fetch(coin_id, fetch)
        except UpstreamUnavailableError as e:
            stale = self.cache.get_stale(coin_id)
            if stale is not None:
                logger.warning(f"Price fetch for {coin_id} failed, serving stale value: {e}")
                return stale
            logger.warning(f"Price fetch for {coin_id} failed, using default: {e}")
            return self.defaults[coin_id]

    async def get_eth_usd_price(self) -> Decimal:
        return await self.get_usd_price(ETH_COIN_ID)

    async def get_donut_usd_price(self) -> Decimal:
        return await self.get_usd_price(DONUT_COIN_ID)

    async def token_pricing(
        self,
        token: str,
        decimals: int = 18,
        quoted_price_usd: Optional[Decimal] = None,
    ) -> TokenPricing:
        """Local valuation inputs for ``token``.

        The native asset and DONUT carry a market price. Any other token is
        valued only through ``quoted_price_usd``, when the caller has one.
        """
        market = None
        if is_native(token):
            market = await self.get_eth_usd_price()
        elif token.lower() == settings.donut_address.lower():
            market = await self.get_donut_usd_price()
        return TokenPricing(decimals=decimals, market_price_usd=market, quoted_price_usd=quoted_price_usd)

    async def donut_quoted_price_usd(self, unit_price: int, unit_decimals: int = 18) -> Decimal:
        """USD price of something quoted on-chain in DONUT base units, e.g. a rig's unit price."""
        return quoted_unit_price_usd(unit_price, unit_decimals, await self.get_donut_usd_price())

    async def estimate_slippage(
        self,
        estimator: SlippageEstimator,
        quote: PriceQuote,
        request: PriceRequest,
        buy_token_decimals: int = 18,
    ) -> SlippageEstimate:
        """Auto slippage; local prices are fetched only when the aggregator left the trade unpriced."""
        if quote.is_zero or quote.has_usd_values:
            return estimator.estimate(quote)
        sell = await self.token_pricing(request.sell_token, request.sell_token_decimals)
        buy = await self.token_pricing(request.buy_token, buy_token_decimals)
        return estimator.estimate(quote, sell, buy)

    async def close(self) -> None:
        await self.provider.close()


# Singleton instance
_price_service: Optional[PriceService] = None


def get_price_service() -> PriceService:
    """Get the singleton PriceService instance."""
    global _price_service
    if _price_service is None:
        _price_service = PriceService(PriceCache(ttl_seconds=settings.price_cache_ttl_seconds))
    return _price_service
