"""Бизнес-логика синхронизации задач."""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Dict, Optional, Tuple

from tqdm import tqdm

from google_tasks_sync.clients import BadRequestError, GoogleTasksAPIError, GoogleTasksClient, NotFoundError
from google_tasks_sync.config import AppConfig
from google_tasks_sync.models import LedgerConflictError, PairingLedger, PairRecord, TaskList
from google_tasks_sync.services.ledger_store import LedgerStore
from google_tasks_sync.services.reconciler import Action, Reconciler, Side, SyncOperation, SyncPlan
from google_tasks_sync.timestamps import format_timestamp, utcnow

LOGGER = logging.getLogger(__name__)


class SyncError(RuntimeError):
    """Синхронизация не может быть выполнена."""


@dataclass
class SyncStats:
    created: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0
    unchanged: int = 0
    failed: int = 0


@dataclass
class SyncReport:
    """Итог одного прохода синхронизации."""

    started_at: datetime
    success: bool = False
    ledger_saved: bool = False
    dry_run: bool = False
    task_list_a: Optional[str] = None
    task_list_b: Optional[str] = None
    stats: SyncStats = field(default_factory=SyncStats)
    error: Optional[str] = None

    def to_dict(self) -> Dict:
        payload = asdict(self)
        payload["started_at"] = format_timestamp(self.started_at)
        return payload


class TaskSyncService:
    """Оркестратор одного прохода синхронизации A ↔ B."""

    def __init__(
        self,
        config: AppConfig,
        client_a: GoogleTasksClient,
        client_b: GoogleTasksClient,
        ledger_store: LedgerStore,
        reconciler: Optional[Reconciler] = None,
    ) -> None:
        self._config = config
        self._clients = {Side.A: client_a, Side.B: client_b}
        self._store = ledger_store
        self._reconciler = reconciler or Reconciler()

    # region public API
    def run_pass(self) -> SyncReport:
        """Выполняет проход; фатальные ошибки попадают в отчёт, а не наружу."""
        report = SyncReport(started_at=utcnow(), dry_run=self._config.sync.dry_run)
        LOGGER.info("Старт синхронизации")
        try:
            list_a, list_b = self.select_task_lists()
            report.task_list_a, report.task_list_b = list_a.title, list_b.title
            ledger = self._store.load()

            tasks_a = self._clients[Side.A].list_all_tasks(list_a.id)
            tasks_b = self._clients[Side.B].list_all_tasks(list_b.id)
            LOGGER.info("Найдено задач: %s в аккаунте A, %s в аккаунте B", len(tasks_a), len(tasks_b))

            plan = self._reconciler.reconcile(tasks_a, tasks_b, ledger, now=report.started_at)
            if self._config.sync.dry_run:
                report.stats = self._dry_run_stats(plan)
            else:
                report.stats = self.apply_plan(plan, {Side.A: list_a.id, Side.B: list_b.id})
                self._store.save(plan.ledger)
                report.ledger_saved = True
        except (GoogleTasksAPIError, SyncError, sqlite3.Error) as exc:
            LOGGER.error("Синхронизация прервана: %s", exc)
            report.error = str(exc)
            return report
        except Exception as exc:
            LOGGER.exception("Синхронизация прервана непредвиденной ошибкой")
            report.error = f"{type(exc).__name__}: {exc}"
            return report

        report.success = True
        LOGGER.info("Синхронизация завершена: %s", asdict(report.stats))
        return report

    def select_task_lists(self) -> Tuple[TaskList, TaskList]:
        """Выбирает списки для синхронизации: по имени из конфига или первые."""
        lists_a = self._clients[Side.A].list_task_lists()
        lists_b = self._clients[Side.B].list_task_lists()
        if not lists_a or not lists_b:
            raise SyncError("Списки задач не найдены в одном или обоих аккаунтах")

        list_a, list_b = lists_a[0], lists_b[0]
        target_name = self._config.sync.task_list_name
        if target_name:
            found_a = self._clients[Side.A].find_task_list_by_name(target_name)
            found_b = self._clients[Side.B].find_task_list_by_name(target_name)
            if found_a and found_b:
                list_a, list_b = found_a, found_b
                LOGGER.info("Синхронизируем список %r", target_name)
            else:
                LOGGER.warning(
                    "Список %r найден не в обоих аккаунтах, используем списки по умолчанию", target_name
                )
        LOGGER.info("Синхронизация: A (%s) <-> B (%s)", list_a.title, list_b.title)
        return list_a, list_b

    def apply_plan(self, plan: SyncPlan, task_list_ids: Dict[Side, str]) -> SyncStats:
        """Выполняет операции плана по очереди и дописывает их результат в журнал.

        Ошибка одной операции не останавливает остальные.
        """
        stats = SyncStats(skipped=plan.skipped, unchanged=plan.unchanged)
        operations = tqdm(
            plan.operations,
            desc="Синхронизация",
            disable=not self._config.sync.show_progress,
        )
        for operation in operations:
            try:
                self._apply_operation(operation, task_list_ids[operation.target], plan.ledger, stats)
            except GoogleTasksAPIError as exc:
                stats.failed += 1
                LOGGER.error("Не удалось выполнить %s: %s", operation.describe(), exc)
                self._handle_failure(operation, exc, plan.ledger)
            except Exception as exc:
                stats.failed += 1
                LOGGER.exception("Непредвиденная ошибка при выполнении %s", operation.describe())
                self._handle_failure(operation, exc, plan.ledger)
        return stats

    # endregion

    # region sync helpers
    def _apply_operation(
        self,
        operation: SyncOperation,
        task_list_id: str,
        ledger: PairingLedger,
        stats: SyncStats,
    ) -> None:
        client = self._clients[operation.target]
        if operation.action is Action.CREATE:
            created = client.create_task(task_list_id, operation.task)
            if operation.target is Side.B:
                record = PairRecord(operation.task.id, created.id, operation.synced_update)
            else:
                record = PairRecord(created.id, operation.task.id, operation.synced_update)
            ledger.add(record)
            stats.created += 1
        elif operation.action is Action.UPDATE:
            client.update_task(task_list_id, operation.target_id, operation.task)
            ledger.touch(operation.pair, operation.synced_update)
            stats.updated += 1
        elif operation.action is Action.DELETE:
            try:
                client.delete_task(task_list_id, operation.target_id)
            except NotFoundError:
                LOGGER.info("Задача %s уже удалена в %s", operation.target_id, operation.target.value)
            stats.deleted += 1

    @staticmethod
    def _handle_failure(operation: SyncOperation, exc: Exception, ledger: PairingLedger) -> None:
        stale = isinstance(exc, (NotFoundError, BadRequestError))
        if operation.action is Action.UPDATE and stale:
            LOGGER.warning("Пара %s устарела, удаляем из журнала", operation.pair.key)
            ledger.remove(operation.pair)
        elif operation.action is Action.DELETE and not stale:
            # удаление повторится на следующем проходе
            try:
                ledger.add(operation.pair)
            except LedgerConflictError:
                LOGGER.warning("Не удалось вернуть пару %s в журнал", operation.pair.key)

    @staticmethod
    def _dry_run_stats(plan: SyncPlan) -> SyncStats:
        for operation in plan.operations:
            LOGGER.info("[DRY-RUN] %s", operation.describe())
        return SyncStats(
            created=plan.count(Action.CREATE),
            updated=plan.count(Action.UPDATE),
            deleted=plan.count(Action.DELETE),
            skipped=plan.skipped,
            unchanged=plan.unchanged,
        )

    # endregion


__all__ = ["TaskSyncService", "SyncStats", "SyncReport", "SyncError"]
