"""
Slippage estimation.

Users never enter slippage by hand: the tolerance is derived from the price
impact of the quoted trade. Impact is measured in USD, preferring the values
the aggregator reports. Newly launched tokens are often unpriced by the
aggregator, so both legs are then valued locally from a reference price
instead of reporting a misleading zero impact.
"""

import logging
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple

from ...config import settings
from .models import PriceQuote


logger = logging.getLogger(__name__)

BPS_PER_PERCENT = 100
# Buffer added on top of the rounded-up impact, in percent
IMPACT_BUFFER_PERCENT = 2


@dataclass(frozen=True)
class TokenPricing:
    """Local valuation inputs for one token.

    ``market_price_usd`` comes from a live pool price; ``quoted_price_usd``
    from an on-chain quote (e.g. a rig's unit price in DONUT times DONUT/USD).
    """

    decimals: int = 18
    market_price_usd: Optional[Decimal] = None
    quoted_price_usd: Optional[Decimal] = None

    @property
    def reference_price_usd(self) -> Optional[Decimal]:
        for price in (self.market_price_usd, self.quoted_price_usd):
            if price is not None and price > 0:
                return price
        return None

    def value_usd(self, amount: int) -> Optional[Decimal]:
        price = self.reference_price_usd
        if price is None:
            return None
        return Decimal(amount).scaleb(-self.decimals) * price


@dataclass(frozen=True)
class SlippageEstimate:
    slippage_bps: int
    price_impact: Optional[Decimal] = None
    source: str = "default"             # aggregator | local | default

    @property
    def slippage_percent(self) -> Decimal:
        return Decimal(self.slippage_bps) / BPS_PER_PERCENT


def price_impact(input_usd: Decimal, output_usd: Decimal) -> Decimal:
    """Percentage of value lost between the two legs, never negative."""
    if input_usd <= 0:
        return Decimal(0)
    return max(Decimal(0), (input_usd - output_usd) / input_usd * 100)


def minimum_received(buy_amount: int, slippage_bps: int) -> int:
    """Lowest output the tolerance allows, in base units."""
    return buy_amount * (10_000 - slippage_bps) // 10_000


def quoted_unit_price_usd(unit_price: int, unit_decimals: int, unit_token_usd: Decimal) -> Decimal:
    """USD price of one token quoted on-chain in another token's base units."""
    return Decimal(unit_price).scaleb(-unit_decimals) * unit_token_usd


class SlippageEstimator:
    """Picks an auto slippage tolerance and reports price impact."""

    def __init__(self, min_bps: Optional[int] = None, max_bps: Optional[int] = None):
        self.min_bps = settings.min_slippage_bps if min_bps is None else min_bps
        self.max_bps = settings.max_slippage_bps if max_bps is None else max_bps
        if self.min_bps > self.max_bps:
            raise ValueError("min_bps must not exceed max_bps")

    @property
    def default(self) -> SlippageEstimate:
        return SlippageEstimate(slippage_bps=self.min_bps)

    def tolerance_bps(self, impact: Decimal) -> int:
        percent = math.ceil(impact) + IMPACT_BUFFER_PERCENT
        low = self.min_bps / BPS_PER_PERCENT
        high = self.max_bps / BPS_PER_PERCENT
        return int(round(min(max(percent, low), high) * BPS_PER_PERCENT))

    def estimate(
        self,
        quote: Optional[PriceQuote],
        sell: Optional[TokenPricing] = None,
        buy: Optional[TokenPricing] = None,
    ) -> SlippageEstimate:
        if quote is None or quote.sell_amount == 0:
            return self.default

        values = self._usd_values(quote, sell, buy)
        if values is None:
            logger.debug("No USD valuation available for quote, using default slippage")
            return self.default

        input_usd, output_usd, source = values
        impact = price_impact(input_usd, output_usd)
        return SlippageEstimate(
            slippage_bps=self.tolerance_bps(impact),
            price_impact=impact,
            source=source,
        )

    def _usd_values(
        self,
        quote: PriceQuote,
        sell: Optional[TokenPricing],
        buy: Optional[TokenPricing],
    ) -> Optional[Tuple[Decimal, Decimal, str]]:
        if quote.has_usd_values:
            return quote.sell_amount_usd, quote.buy_amount_usd, "aggregator"

        # Both legs are valued the same way so the comparison stays consistent
        if sell is None or buy is None:
            return None
        input_usd = sell.value_usd(quote.sell_amount)
        output_usd = buy.value_usd(quote.buy_amount)
        if not input_usd or output_usd is None:
            return None
        return input_usd, output_usd, "local"
