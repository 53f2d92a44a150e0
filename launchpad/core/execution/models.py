"""
Transaction execution models and types.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from eth_utils import is_address, is_hex

from ..errors import FailureReason


MAX_UINT256 = 2**256 - 1

# Stopping causes after which the rest of a sequence never reached the chain
RESUMABLE_CAUSES = frozenset({FailureReason.WALLET_REJECTED, FailureReason.SUBMISSION_FAILED})


class BatchState(str, Enum):
    """Lifecycle of one logical user action (mine, buy, launch, swap)."""
    IDLE = "idle"                # Ready to execute
    PENDING = "pending"          # Waiting on the wallet to accept the calls
    CONFIRMING = "confirming"    # Calls broadcast, waiting for inclusion
    SUCCESS = "success"          # Every call included successfully
    ERROR = "error"              # Rejected, failed or reverted

    @property
    def is_terminal(self) -> bool:
        return self in (BatchState.SUCCESS, BatchState.ERROR)

    @property
    def is_in_flight(self) -> bool:
        return self in (BatchState.PENDING, BatchState.CONFIRMING)


class SubmissionMode(str, Enum):
    """How the CapabilityNegotiator put the calls on-chain."""
    ATOMIC = "atomic"            # Single EIP-5792 batch, all-or-nothing
    SEQUENTIAL = "sequential"    # One transaction per call, in order
    DIRECT = "direct"            # Single call, no batching involved


class ReceiptStatus(str, Enum):
    SUCCESS = "success"
    REVERTED = "reverted"


@dataclass(frozen=True)
class Call:
    """An atomic on-chain instruction.

    Immutable and built fresh for every submission: approvals and nonces
    are per-submission, so a Call is never reused across attempts.
    """
    target: str
    payload: str = "0x"                         # Encoded calldata (hex)
    value: int = 0                              # Wei to send
    label: str = field(default="", compare=False)

    def __post_init__(self):
        if not is_address(self.target):
            raise ValueError(f"Invalid call target: {self.target!r}")
        if not (isinstance(self.payload, str) and self.payload.startswith("0x") and is_hex(self.payload)):
            raise ValueError("Call payload must be 0x-prefixed hex")
        if len(self.payload) % 2:
            raise ValueError("Call payload must contain whole bytes")
        if not 0 <= int(self.value) <= MAX_UINT256:
            raise ValueError("Call value must be a uint256")

    def to_rpc(self) -> Dict[str, Any]:
        """Shape used by wallet_sendCalls and eth_sendTransaction."""
        return {
            "to": self.target,
            "data": self.payload,
            "value": hex(self.value),
        }


@dataclass(frozen=True)
class SubmissionHandle:
    """Opaque reference returned by the wallet for a submission."""
    id: str
    mode: SubmissionMode


@dataclass(frozen=True)
class Receipt:
    """Inclusion result for one submission."""
    status: ReceiptStatus
    transaction_hash: Optional[str] = None
    block_number: Optional[int] = None

    @property
    def is_success(self) -> bool:
        return self.status == ReceiptStatus.SUCCESS


@dataclass
class BatchReceipt:
    """Final result of a whole call sequence, as reported by a BatchHandle."""
    identity: str
    mode: SubmissionMode
    completed_calls: int
    transaction_hashes: List[str] = field(default_factory=list)


@dataclass
class BatchOutcome:
    """Terminal result of BatchExecutor.execute, never an exception.

    ``completed_calls`` were applied on-chain. ``remaining_calls`` never reached
    the chain; a call that was broadcast and reverted is in neither. ``cause``
    is the reason of the call that stopped a partial batch.
    """
    state: BatchState
    reason: Optional[FailureReason] = None
    cause: Optional[FailureReason] = None
    identity: Optional[str] = None
    mode: Optional[SubmissionMode] = None
    completed_calls: Tuple[Call, ...] = ()
    remaining_calls: Tuple[Call, ...] = ()
    transaction_hashes: List[str] = field(default_factory=list)
    error: Optional[str] = None
    abandoned: bool = False             # Cancelled before a terminal receipt
    finished_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_success(self) -> bool:
        return self.state == BatchState.SUCCESS

    @property
    def submitted(self) -> bool:
        """Whether anything reached the chain during this attempt."""
        return bool(self.identity or self.transaction_hashes or self.completed_calls)

    @property
    def can_resume(self) -> bool:
        return (
            self.reason == FailureReason.PARTIAL_BATCH_FAILURE
            and self.cause in RESUMABLE_CAUSES
            and bool(self.remaining_calls)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "reason": self.reason.value if self.reason else None,
            "cause": self.cause.value if self.cause else None,
            "identity": self.identity,
            "mode": self.mode.value if self.mode else None,
            "completed": len(self.completed_calls),
            "remaining": len(self.remaining_calls),
            "transaction_hashes": list(self.transaction_hashes),
            "error": self.error,
            "abandoned": self.abandoned,
        }
