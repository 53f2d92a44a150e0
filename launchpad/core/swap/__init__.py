"""
Swap quoting and slippage.

SwapRunner lives in ``launchpad.core.swap.runner`` and is imported from there.
"""

from .models import (
    BuildQuote,
    BuildRequest,
    FeeDirection,
    PriceQuote,
    PriceRequest,
    QuoteBinding,
    QuoteFailure,
)
from .units import format_units, parse_units
from .quotes import QuoteAggregatorClient
from .slippage import (
    SlippageEstimate,
    SlippageEstimator,
    TokenPricing,
    minimum_received,
    price_impact,
)

__all__ = [
    "BuildQuote",
    "BuildRequest",
    "FeeDirection",
    "PriceQuote",
    "PriceRequest",
    "QuoteBinding",
    "QuoteFailure",
    "format_units",
    "parse_units",
    "QuoteAggregatorClient",
    "SlippageEstimate",
    "SlippageEstimator",
    "TokenPricing",
    "minimum_received",
    "price_impact",
]
