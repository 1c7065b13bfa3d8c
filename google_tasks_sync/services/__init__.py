"""Сервисный слой приложения."""

from .ledger_store import LedgerStore
from .reconciler import Action, Reconciler, Side, SyncOperation, SyncPlan
from .sync import SyncError, SyncReport, SyncStats, TaskSyncService

__all__ = [
    "TaskSyncService",
    "LedgerStore",
    "Reconciler",
    "SyncPlan",
    "SyncOperation",
    "Side",
    "Action",
    "SyncStats",
    "SyncReport",
    "SyncError",
]
