from .scheduler import TaskScheduler
from .reconciler import (
    AUCTION_SETTLEMENT_DELAYS,
    TRADE_SETTLEMENT_DELAYS,
    SettlementReconciler,
)

__all__ = [
    "TaskScheduler",
    "SettlementReconciler",
    "TRADE_SETTLEMENT_DELAYS",
    "AUCTION_SETTLEMENT_DELAYS",
]
