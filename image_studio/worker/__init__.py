from .stuck_generation_sweeper import StuckGenerationSweeper
from .pending_dispatcher import PendingGenerationDispatcher
from .balance_reconciler import BalanceReconcilerWorker

__all__ = [
    "StuckGenerationSweeper",
    "PendingGenerationDispatcher",
    "BalanceReconcilerWorker",
]
