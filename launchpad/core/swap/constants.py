"""Swap constants and fee policy."""

from ...config import settings
from .models import FeeDirection


# Placeholder address aggregators use for the chain's native asset
NATIVE_TOKEN_ADDRESS = settings.native_token_address

DEFAULT_FEE_BPS = settings.swap_fee_bps


def is_native(token: str) -> bool:
    return token.lower() == NATIVE_TOKEN_ADDRESS.lower()


def fee_direction(sell_token: str, buy_token: str) -> FeeDirection:
    """The protocol fee is always taken on the native-asset leg of a trade."""
    if is_native(sell_token):
        return FeeDirection.INPUT
    if is_native(buy_token):
        return FeeDirection.OUTPUT
    return FeeDirection.NONE
