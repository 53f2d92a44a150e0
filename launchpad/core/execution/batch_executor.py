"""
Batch executor: one logical user action, one state machine.

Drives a list of calls through the CapabilityNegotiator and tracks

    idle -> pending -> confirming -> success | error

Terminal states only go back to idle through an explicit ``reset()``.
Every failure ends as ``BatchOutcome(state=error, reason=...)``. Only task
cancellation escapes ``execute()``, after the abandoned attempt is recorded.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set, Union

from ..errors import (
    EngineError,
    FailureReason,
    InvalidBatchTransitionError,
    PartialBatchFailureError,
    classify_error,
)
from .capabilities import BatchHandle, CapabilityNegotiator
from .models import BatchOutcome, BatchState, Call, SubmissionMode


SuccessListener = Callable[[BatchOutcome], Union[None, Awaitable[None]]]


class BatchExecutor:
    """
    Executes one logical action (mine, buy, launch, swap, add-liquidity).

    Each action owns its own instance; instances are independent and may
    run concurrently. A single instance never runs two executions at once:
    ``execute()`` is only accepted from ``idle``.
    """

    TRANSITIONS: Dict[BatchState, Set[BatchState]] = {
        BatchState.IDLE: {BatchState.PENDING},
        BatchState.PENDING: {BatchState.CONFIRMING, BatchState.ERROR},
        BatchState.CONFIRMING: {BatchState.SUCCESS, BatchState.ERROR},
        BatchState.SUCCESS: {BatchState.IDLE},
        BatchState.ERROR: {BatchState.IDLE},
    }

    def __init__(
        self,
        negotiator: CapabilityNegotiator,
        name: str = "action",
        logger: Optional[logging.Logger] = None,
    ):
        self.negotiator = negotiator
        self.name = name
        self.logger = logger or logging.getLogger(__name__)
        self._state = BatchState.IDLE
        self._outcome: Optional[BatchOutcome] = None
        self._handle: Optional[BatchHandle] = None
        self._success_listeners: List[SuccessListener] = []

    @property
    def state(self) -> BatchState:
        return self._state

    @property
    def outcome(self) -> Optional[BatchOutcome]:
        """Terminal result of the last execution, until reset()."""
        return self._outcome

    @property
    def identity(self) -> Optional[str]:
        if self._handle is None:
            return None
        return self._handle.identity

    def add_success_listener(self, listener: SuccessListener) -> None:
        """Register a callback run on every transition into ``success``."""
        self._success_listeners.append(listener)

    def can_transition_to(self, to_state: BatchState) -> bool:
        return to_state in self.TRANSITIONS.get(self._state, set())

    def _transition(self, to_state: BatchState, reason: Optional[str] = None) -> None:
        if not self.can_transition_to(to_state):
            raise InvalidBatchTransitionError(
                self._state,
                f"transition to {to_state.value}",
                message=f"Invalid transition from {self._state.value} to {to_state.value}. "
                        f"Allowed: {[s.value for s in self.TRANSITIONS.get(self._state, set())]}",
            )
        from_state = self._state
        self._state = to_state
        self.logger.info(
            f"Batch {self.name}: {from_state.value} -> {to_state.value}"
            f"{f' ({reason})' if reason else ''}"
        )

    async def execute(self, calls: Sequence[Call]) -> BatchOutcome:
        """
        Submit the calls and wait for the terminal result.

        If the surrounding task is cancelled the attempt is recorded as an
        abandoned ``error`` outcome before the cancellation propagates; any
        broadcast already made keeps its identity on that outcome.

        Raises:
            InvalidBatchTransitionError: if the executor is not idle
            ValueError: if ``calls`` is empty
        """
        if self._state != BatchState.IDLE:
            raise InvalidBatchTransitionError(self._state, "execute")
        if not calls:
            raise ValueError("execute() requires at least one call")

        calls = tuple(calls)
        self._outcome = None
        self._handle = None
        self._transition(BatchState.PENDING, f"{len(calls)} call(s)")

        try:
            self._handle = await self.negotiator.submit(calls)
        except asyncio.CancelledError:
            self._abandon(calls)
            raise
        except Exception as exc:
            return self._fail(calls, classify_error(exc))

        self._transition(BatchState.CONFIRMING, f"{self._handle.mode.value} {self._handle.identity}")

        try:
            receipt = await self._handle.wait()
        except asyncio.CancelledError:
            self._abandon(calls)
            raise
        except Exception as exc:
            return self._fail(calls, classify_error(exc))

        outcome = BatchOutcome(
            state=BatchState.SUCCESS,
            identity=receipt.identity,
            mode=receipt.mode,
            completed_calls=calls,
            transaction_hashes=receipt.transaction_hashes,
        )
        self._outcome = outcome
        self._transition(BatchState.SUCCESS, receipt.identity)
        await self._notify_success(outcome)
        return outcome

    async def resume(self, calls: Sequence[Call]) -> BatchOutcome:
        """
        Continue a sequential batch whose remaining calls never reached the chain.

        ``calls`` must be planned afresh for the remaining work (``ActionPlanner``
        re-reads the allowance); the stopped batch's calls are never replayed.
        A batch stopped by an on-chain revert cannot be resumed.

        Raises:
            InvalidBatchTransitionError: no resumable partial failure to continue
            ValueError: ``calls`` repeats a call that was already applied
        """
        outcome = self._outcome
        if self._state != BatchState.ERROR or outcome is None or not outcome.can_resume:
            raise InvalidBatchTransitionError(
                self._state,
                "resume",
                message="Can only resume from error after a partial batch failure "
                        "whose remaining calls never reached the chain",
            )
        if any(call in outcome.completed_calls for call in calls):
            raise ValueError("resume() calls must not repeat an already applied call")

        self.logger.info(
            f"Batch {self.name}: resuming after {len(outcome.completed_calls)} applied call(s) "
            f"with {len(calls)} new call(s)"
        )
        self.reset()
        return await self.execute(calls)

    def reset(self) -> None:
        """Return to idle after the caller consumed the terminal result."""
        if self._state.is_in_flight:
            # The broadcast itself cannot be cancelled; refuse to pretend otherwise
            self.logger.error(
                f"Batch {self.name}: reset() called while {self._state.value}; "
                f"in-flight submission {self.identity or '<unsubmitted>'} would be abandoned"
            )
            raise InvalidBatchTransitionError(self._state, "reset")
        if self._state == BatchState.IDLE:
            raise InvalidBatchTransitionError(self._state, "reset")
        self._transition(BatchState.IDLE, "reset")
        self._outcome = None
        self._handle = None

    def _fail(self, calls: Sequence[Call], error: EngineError) -> BatchOutcome:
        completed = self._handle.completed if self._handle else 0
        hashes = list(self._handle.transaction_hashes) if self._handle else []
        remaining: Sequence[Call] = ()
        cause = None
        if isinstance(error, PartialBatchFailureError):
            completed = error.completed
            hashes = error.transaction_hashes or hashes
            remaining = calls[error.submitted:]
            cause = error.cause.reason if error.cause else None

        identity = None
        if self._handle is not None and (hashes or self._handle.mode == SubmissionMode.ATOMIC):
            identity = self._handle.identity

        outcome = BatchOutcome(
            state=BatchState.ERROR,
            reason=error.reason,
            cause=cause,
            identity=identity,
            mode=self._handle.mode if self._handle else None,
            completed_calls=tuple(calls[:completed]),
            remaining_calls=tuple(remaining),
            transaction_hashes=hashes,
            error=error.message,
        )
        self._outcome = outcome
        self.logger.warning(
            f"Batch {self.name} failed ({error.reason.value}): {error.message}"
        )
        self._transition(BatchState.ERROR, error.reason.value)
        return outcome

    def _abandon(self, calls: Sequence[Call]) -> None:
        """Record a cancelled attempt; whatever was broadcast may still be included."""
        handle = self._handle
        outcome = BatchOutcome(
            state=BatchState.ERROR,
            reason=FailureReason.SUBMISSION_FAILED,
            identity=handle.identity if handle else None,
            mode=handle.mode if handle else None,
            completed_calls=tuple(calls[:handle.completed]) if handle else (),
            transaction_hashes=list(handle.transaction_hashes) if handle else [],
            error=f"Cancelled while {self._state.value}",
            abandoned=True,
        )
        self._outcome = outcome
        self.logger.warning(
            f"Batch {self.name} abandoned while {self._state.value}; "
            f"submission {outcome.identity or '<unsubmitted>'} may still be included"
        )
        self._transition(BatchState.ERROR, "cancelled")

    async def _notify_success(self, outcome: BatchOutcome) -> None:
        for listener in self._success_listeners:
            try:
                result: Any = listener(outcome)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self.logger.error(f"Success listener error: {e}")
