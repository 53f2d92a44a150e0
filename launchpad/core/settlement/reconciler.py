"""
Settlement reconciliation.

After a batch settles, balances and rig/auction snapshots are read from RPC
nodes and an indexer that lag the chain head by a roughly constant re-sync
interval. The reconciler refreshes them immediately and then again on a fixed
delay schedule until they have caught up.
"""

import logging
from collections import OrderedDict
from typing import Awaitable, Callable, List, Optional, Sequence

from ...config import settings
from ..execution.models import BatchOutcome
from .scheduler import TaskScheduler


logger = logging.getLogger(__name__)

Refresher = Callable[[], Awaitable[None]]

TRADE_SETTLEMENT_DELAYS = settings.trade_settlement_delays
AUCTION_SETTLEMENT_DELAYS = settings.auction_settlement_delays

# Identities remembered for de-duplication
MAX_REMEMBERED_IDENTITIES = 32


class SettlementReconciler:
    """
    Re-reads dependent state after a successful settlement.

    Each TransactionIdentity triggers exactly one refresh schedule, however
    many times the success notification arrives.
    """

    def __init__(
        self,
        refreshers: Sequence[Refresher] = (),
        delays: Sequence[float] = TRADE_SETTLEMENT_DELAYS,
        scheduler: Optional[TaskScheduler] = None,
        name: str = "settlement",
    ):
        self.name = name
        self.delays = tuple(delays)
        self._refreshers: List[Refresher] = list(refreshers)
        self._scheduler = scheduler or TaskScheduler(name=f"{name}-refresh")
        self._seen: "OrderedDict[str, None]" = OrderedDict()

    @property
    def last_identity(self) -> Optional[str]:
        return next(reversed(self._seen), None)

    @property
    def pending_refreshes(self) -> int:
        return self._scheduler.pending

    def add_refresher(self, refresher: Refresher) -> None:
        self._refreshers.append(refresher)

    def has_processed(self, identity: str) -> bool:
        return identity in self._seen

    def settle(self, identity: str) -> bool:
        """
        Start the refresh schedule for a settled transaction.

        Returns False (and schedules nothing) when this identity was already
        processed. Must be called from a running event loop.
        """
        if not identity:
            raise ValueError("settle() requires a transaction identity")
        if identity in self._seen:
            logger.debug(f"{self.name}: duplicate settlement {identity} ignored")
            return False

        self._remember(identity)
        schedule = [(0.0, self.refresh)] + [(delay, self.refresh) for delay in self.delays]
        self._scheduler.schedule(schedule)
        logger.info(f"{self.name}: settlement {identity} scheduled {len(schedule)} refresh(es)")
        return True

    async def on_batch_success(self, outcome: BatchOutcome) -> None:
        """BatchExecutor success listener."""
        if outcome.identity:
            self.settle(outcome.identity)

    async def refresh(self) -> None:
        """Run every refresher once; one failing source does not block the others."""
        for refresher in self._refreshers:
            try:
                await refresher()
            except Exception as e:
                logger.warning(f"{self.name}: refresh failed: {e}")

    def cancel(self) -> int:
        """Cancel pending refreshes (e.g. the owning view is torn down)."""
        return self._scheduler.cancel_all()

    async def wait_idle(self) -> None:
        await self._scheduler.drain()

    async def close(self) -> None:
        await self._scheduler.close()

    def _remember(self, identity: str) -> None:
        self._seen[identity] = None
        while len(self._seen) > MAX_REMEMBERED_IDENTITIES:
            self._seen.popitem(last=False)
