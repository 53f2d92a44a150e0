"""Typed models used by the swap subsystem."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Union

from eth_utils import is_address

from ..errors import FailureReason, QuoteStaleError
from ..execution.models import Call
from .units import parse_units


class FeeDirection(str, Enum):
    """Which leg of the trade the protocol fee is charged on."""

    INPUT = "currency_in"
    OUTPUT = "currency_out"
    NONE = ""


@dataclass(frozen=True)
class PriceRequest:
    """A desired trade, amounts in base units."""

    sell_token: str
    buy_token: str
    sell_amount: int
    sell_token_decimals: int = 18

    def __post_init__(self):
        if self.sell_amount < 0:
            raise ValueError("sell_amount must be non-negative")
        for token in (self.sell_token, self.buy_token):
            if not is_address(token):
                raise ValueError(f"Invalid token address: {token!r}")

    @classmethod
    def from_display(cls, sell_token: str, buy_token: str, amount: str, decimals: int) -> "PriceRequest":
        """Build a request from a user-typed amount such as "1.5"."""
        return cls(
            sell_token=sell_token,
            buy_token=buy_token,
            sell_amount=parse_units(amount, decimals),
            sell_token_decimals=decimals,
        )


@dataclass(frozen=True)
class BuildRequest(PriceRequest):
    """A trade ready to be turned into a transaction for ``taker``."""

    slippage_bps: int = 0
    taker: str = ""

    def __post_init__(self):
        super().__post_init__()
        if not is_address(self.taker):
            raise ValueError(f"Invalid taker address: {self.taker!r}")
        if self.slippage_bps < 0 or self.slippage_bps > 10_000:
            raise ValueError("slippage_bps must be within [0, 10000]")

    @classmethod
    def for_price(cls, request: PriceRequest, *, slippage_bps: int, taker: str) -> "BuildRequest":
        return cls(
            sell_token=request.sell_token,
            buy_token=request.buy_token,
            sell_amount=request.sell_amount,
            sell_token_decimals=request.sell_token_decimals,
            slippage_bps=slippage_bps,
            taker=taker,
        )


@dataclass(frozen=True)
class QuoteBinding:
    """The tuple a build quote's transaction is valid for."""

    sell_token: str
    buy_token: str
    sell_amount: int
    slippage_bps: int
    taker: str

    @classmethod
    def of(cls, request: BuildRequest) -> "QuoteBinding":
        return cls(
            sell_token=request.sell_token.lower(),
            buy_token=request.buy_token.lower(),
            sell_amount=request.sell_amount,
            slippage_bps=request.slippage_bps,
            taker=request.taker.lower(),
        )


@dataclass(kw_only=True)
class PriceQuote:
    """Advisory pricing for a trade; may be stale seconds after creation."""

    sell_amount: int
    buy_amount: int
    sell_amount_usd: Optional[Decimal] = None
    buy_amount_usd: Optional[Decimal] = None
    estimated_gas: int = 0
    fee_amount: int = 0
    fee_token: Optional[str] = None
    route_summary: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def zero(cls) -> "PriceQuote":
        return cls(sell_amount=0, buy_amount=0)

    @property
    def is_zero(self) -> bool:
        return self.sell_amount == 0

    @property
    def has_usd_values(self) -> bool:
        """Both legs priced by the aggregator (zero means unpriced)."""
        return bool(self.sell_amount_usd) and bool(self.buy_amount_usd)

    @property
    def price(self) -> Decimal:
        """Base-unit exchange rate, for display only."""
        if not self.sell_amount:
            return Decimal(0)
        return Decimal(self.buy_amount) / Decimal(self.sell_amount)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sellAmount": str(self.sell_amount),
            "buyAmount": str(self.buy_amount),
            "price": str(self.price),
            "sellAmountUsd": str(self.sell_amount_usd) if self.sell_amount_usd is not None else None,
            "buyAmountUsd": str(self.buy_amount_usd) if self.buy_amount_usd is not None else None,
            "estimatedGas": str(self.estimated_gas),
            "fees": {
                "integratorFee": {
                    "amount": str(self.fee_amount),
                    "token": self.fee_token,
                }
            },
        }


@dataclass(kw_only=True)
class BuildQuote(PriceQuote):
    """Price quote plus an executable transaction, bound to its request.

    The transaction may be executed at most once. ``claim()`` hands it out
    for a single attempt; ``mark_consumed()`` retires it once the calls
    reached the chain, ``release()`` returns it if nothing was submitted.
    """

    transaction: Call
    binding: QuoteBinding
    allowance_spender: Optional[str] = None
    deadline: Optional[int] = None
    _claimed: bool = field(default=False, init=False, repr=False, compare=False)
    _consumed: bool = field(default=False, init=False, repr=False, compare=False)

    @property
    def consumed(self) -> bool:
        return self._consumed

    def matches(self, request: BuildRequest) -> bool:
        return QuoteBinding.of(request) == self.binding

    def claim(self, request: BuildRequest) -> Call:
        """Reserve the transaction for one execution of ``request``.

        Raises:
            QuoteStaleError: the request changed, or the quote is used / in use
        """
        if self._consumed:
            raise QuoteStaleError("Quote was already executed")
        if self._claimed:
            raise QuoteStaleError("Quote is already being executed")
        if not self.matches(request):
            raise QuoteStaleError(
                "Quote no longer matches the trade",
                details={"expected": self.binding.__dict__, "actual": QuoteBinding.of(request).__dict__},
            )
        self._claimed = True
        return self.transaction

    def release(self) -> None:
        self._claimed = False

    def mark_consumed(self) -> None:
        self._claimed = False
        self._consumed = True

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["transaction"] = {
            "to": self.transaction.target,
            "data": self.transaction.payload,
            "value": str(self.transaction.value),
            "gas": str(self.estimated_gas),
        }
        data["issues"] = {"allowance": {"spender": self.allowance_spender}} if self.allowance_spender else {}
        data["deadline"] = self.deadline
        return data


@dataclass(frozen=True)
class QuoteFailure:
    """Typed "no quote" result: a legitimate steady state, not a crash."""

    reason: FailureReason
    message: str = ""
    status_code: Optional[int] = None

    @property
    def is_no_route(self) -> bool:
        return self.reason == FailureReason.NO_ROUTE


PriceResult = Union[PriceQuote, QuoteFailure]
BuildResult = Union[BuildQuote, QuoteFailure]
