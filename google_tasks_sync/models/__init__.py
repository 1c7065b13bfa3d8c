"""Доменные модели синхронизации."""

from .entities import STATUS_NEEDS_ACTION, PairRecord, Task, TaskList
from .ledger import LedgerConflictError, PairingLedger

__all__ = [
    "Task",
    "TaskList",
    "PairRecord",
    "PairingLedger",
    "LedgerConflictError",
    "STATUS_NEEDS_ACTION",
]
