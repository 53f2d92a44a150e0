"""
Error Classification

Defines the failure taxonomy of the settlement engine.
Errors are classified as recoverable (the user can simply try again, usually
after re-quoting) or unrecoverable (terminal for this attempt, never retried
automatically because money may already have moved).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class FailureReason(str, Enum):
    """Discriminated reason attached to a failed quote or batch."""

    NO_ROUTE = "no_route"
    QUOTE_STALE = "quote_stale"
    WALLET_REJECTED = "wallet_rejected"
    PARTIAL_BATCH_FAILURE = "partial_batch_failure"
    ON_CHAIN_REVERT = "on_chain_revert"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    SUBMISSION_FAILED = "submission_failed"


class ErrorCategory(str, Enum):
    """Coarse categories used for logging and HTTP mapping."""

    QUOTE = "quote"               # Aggregator could not price/build the trade
    WALLET = "wallet"             # Provider/wallet refused or failed the request
    TRANSACTION = "transaction"   # Included on-chain but reverted
    NETWORK = "network"           # Upstream service unreachable
    STATE = "state"               # Illegal state-machine transition


@dataclass
class ErrorContext:
    """Additional context about an error."""

    reason: FailureReason
    category: ErrorCategory
    recoverable: bool = True
    suggested_action: Optional[str] = None
    tx_hash: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


class EngineError(Exception):
    """Base class for structured engine errors."""

    reason: FailureReason = FailureReason.SUBMISSION_FAILED
    category: ErrorCategory = ErrorCategory.WALLET
    recoverable: bool = False
    suggested_action: Optional[str] = None

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def context(self) -> ErrorContext:
        return ErrorContext(
            reason=self.reason,
            category=self.category,
            recoverable=self.recoverable,
            suggested_action=self.suggested_action,
            tx_hash=self.details.get("tx_hash"),
            details=dict(self.details),
        )


# Recoverable errors
class NoRouteError(EngineError):
    """The aggregator found no viable path (thin liquidity is a normal state)."""

    reason = FailureReason.NO_ROUTE
    category = ErrorCategory.QUOTE
    recoverable = True
    suggested_action = "Try a different amount or pair"


class UpstreamUnavailableError(EngineError):
    """Aggregator, price feed or indexer unreachable or returned an error."""

    reason = FailureReason.UPSTREAM_UNAVAILABLE
    category = ErrorCategory.NETWORK
    recoverable = True
    suggested_action = "Quote unavailable, retry shortly"

    def __init__(
        self,
        message: str = "Upstream unavailable",
        *,
        status_code: Optional[int] = None,
        provider: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        merged = {"status_code": status_code, "provider": provider, **(details or {})}
        super().__init__(message, details=merged)
        self.status_code = status_code
        self.provider = provider


class QuoteStaleError(EngineError):
    """A build quote no longer matches the request, or was already used."""

    reason = FailureReason.QUOTE_STALE
    category = ErrorCategory.QUOTE
    recoverable = True
    suggested_action = "Fetch a fresh quote"


class WalletRejectedError(EngineError):
    """The user declined the request in their wallet."""

    reason = FailureReason.WALLET_REJECTED
    category = ErrorCategory.WALLET
    recoverable = True
    suggested_action = "Confirm the request in your wallet to continue"


# Unrecoverable errors
class SubmissionError(EngineError):
    """The wallet/provider failed to accept the calls."""

    reason = FailureReason.SUBMISSION_FAILED
    category = ErrorCategory.WALLET


class OnChainRevertError(EngineError):
    """Included on-chain but reverted. Never retried implicitly."""

    reason = FailureReason.ON_CHAIN_REVERT
    category = ErrorCategory.TRANSACTION
    suggested_action = "Re-quote before trying again"

    def __init__(self, message: str = "Transaction reverted", *, tx_hash: Optional[str] = None):
        super().__init__(message, details={"tx_hash": tx_hash})
        self.tx_hash = tx_hash


class PartialBatchFailureError(EngineError):
    """A sequential batch stopped after some calls were already applied."""

    reason = FailureReason.PARTIAL_BATCH_FAILURE
    category = ErrorCategory.TRANSACTION
    suggested_action = "Re-check allowance and submit freshly planned calls for the rest"

    def __init__(
        self,
        message: str,
        *,
        completed: int,
        total: int,
        submitted: Optional[int] = None,
        transaction_hashes: Optional[List[str]] = None,
        cause: Optional[EngineError] = None,
    ):
        submitted = completed if submitted is None else submitted
        super().__init__(
            message,
            details={
                "completed": completed,
                "submitted": submitted,
                "total": total,
                "transaction_hashes": list(transaction_hashes or []),
                "cause": cause.reason.value if cause else None,
            },
        )
        self.completed = completed
        # Calls that reached the chain, including one that reverted or never resolved
        self.submitted = submitted
        self.total = total
        self.transaction_hashes = list(transaction_hashes or [])
        self.cause = cause


class InvalidBatchTransitionError(Exception):
    """Raised when a BatchExecutor operation is attempted from the wrong state."""

    category = ErrorCategory.STATE

    def __init__(self, from_state: Any, operation: str, message: Optional[str] = None):
        self.from_state = from_state
        self.operation = operation
        state_value = getattr(from_state, "value", from_state)
        super().__init__(message or f"Cannot {operation} from {state_value} state")


# JSON-RPC error code for "user rejected request" (EIP-1193)
USER_REJECTED_CODE = 4001

_REJECTION_PATTERNS = (
    "user rejected",
    "user denied",
    "rejected the request",
    "request rejected",
    "cancelled by user",
)


def classify_error(error: Exception) -> EngineError:
    """
    Turn an arbitrary exception from a collaborator into a structured error.

    Already-classified errors pass through untouched.
    """
    if isinstance(error, EngineError):
        return error

    code = getattr(error, "code", None)
    message = str(error)
    lowered = message.lower()

    if code == USER_REJECTED_CODE or any(p in lowered for p in _REJECTION_PATTERNS):
        return WalletRejectedError(message or "User rejected the request")

    if "revert" in lowered:
        return OnChainRevertError(message)

    return SubmissionError(message or error.__class__.__name__)
