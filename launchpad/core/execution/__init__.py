"""
Transaction Execution Layer

Turns a list of calls into on-chain state:
- CapabilityNegotiator: one submit() over atomic, sequential and direct paths
- BatchExecutor: per-action state machine with structured outcomes
- Call encoders for approvals and launchpad router actions

Usage:
    from launchpad.core.execution import (
        BatchExecutor,
        CapabilityNegotiator,
        encode_approve_call,
    )

    executor = BatchExecutor(CapabilityNegotiator(wallet), name="mine")
    outcome = await executor.execute([approve_call, mine_call])
    if outcome.is_success:
        ...
    executor.reset()
"""

from .models import (
    MAX_UINT256,
    BatchOutcome,
    BatchReceipt,
    BatchState,
    Call,
    Receipt,
    ReceiptStatus,
    SubmissionHandle,
    SubmissionMode,
)

from .calls import (
    decode_uint256,
    encode_allowance_call,
    encode_approve_call,
    encode_buy_call,
    encode_contract_call,
    encode_mine_call,
    mine_max_price,
    selector,
)

from .capabilities import (
    BatchHandle,
    CapabilityNegotiator,
)

from .batch_executor import (
    BatchExecutor,
)

__all__ = [
    # Models
    "MAX_UINT256",
    "BatchOutcome",
    "BatchReceipt",
    "BatchState",
    "Call",
    "Receipt",
    "ReceiptStatus",
    "SubmissionHandle",
    "SubmissionMode",
    # Encoders
    "decode_uint256",
    "encode_allowance_call",
    "encode_approve_call",
    "encode_buy_call",
    "encode_contract_call",
    "encode_mine_call",
    "mine_max_price",
    "selector",
    # Submission
    "BatchHandle",
    "CapabilityNegotiator",
    "BatchExecutor",
]
