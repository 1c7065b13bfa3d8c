"""Сверка двух снимков задач и построение плана синхронизации.

Сверка ничего не меняет во внешних аккаунтах и не трогает переданный журнал:
результатом является план (упорядоченный список операций) и копия журнала с
изменениями, не зависящими от исхода операций. Изменения, которые зависят от
ответа API (id созданной задачи, успешность обновления), вносит исполнитель
плана, см. ``TaskSyncService.apply_plan``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple

from google_tasks_sync.clients.task_mapper import SYNCED_FIELDS
from google_tasks_sync.models import PairingLedger, PairRecord, Task
from google_tasks_sync.timestamps import utcnow

LOGGER = logging.getLogger(__name__)


class Side(str, Enum):
    A = "A"
    B = "B"

    @property
    def other(self) -> "Side":
        return Side.B if self is Side.A else Side.A


class Action(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(slots=True)
class SyncOperation:
    """Одна запись в аккаунт ``target``.

    Для create/update ``task`` содержит источник данных, для delete это
    удаляемая задача.
    """

    action: Action
    target: Side
    task: Task
    target_id: Optional[str] = None
    pair: Optional[PairRecord] = None
    synced_update: Optional[datetime] = None

    def describe(self) -> str:
        return f"{self.action.value} в {self.target.value}: {self.task.title!r}"


@dataclass
class SyncPlan:
    operations: List[SyncOperation] = field(default_factory=list)
    ledger: PairingLedger = field(default_factory=PairingLedger)
    skipped: int = 0
    unchanged: int = 0

    def count(self, action: Action) -> int:
        return sum(1 for operation in self.operations if operation.action is action)


def content_key(task: Task) -> Tuple:
    """Значения синхронизируемых полей; пустые заметки и None не различаются."""
    return tuple(getattr(task, name) or None for name in SYNCED_FIELDS)


class Reconciler:
    """Строит минимальный набор операций, сводящий два аккаунта к одному состоянию."""

    def reconcile(
        self,
        tasks_a: Iterable[Task],
        tasks_b: Iterable[Task],
        ledger: PairingLedger,
        now: Optional[datetime] = None,
    ) -> SyncPlan:
        tasks_a_map: Dict[str, Task] = {task.id: task for task in tasks_a}
        tasks_b_map: Dict[str, Task] = {task.id: task for task in tasks_b}
        plan = SyncPlan(ledger=ledger.copy())
        processed: Set[str] = set()

        for task_a in sorted(tasks_a_map.values(), key=lambda task: task.id):
            record = plan.ledger.by_a_id(task_a.id)
            if record is None:
                LOGGER.info("Новая задача в A, создаём в B: %s", task_a.title)
                plan.operations.append(
                    SyncOperation(Action.CREATE, Side.B, task_a, synced_update=task_a.updated)
                )
                continue

            task_b = tasks_b_map.get(record.account_b_id)
            if task_b is None:
                LOGGER.info("Удаляем из A (удалена в B): %s", task_a.title)
                plan.operations.append(
                    SyncOperation(Action.DELETE, Side.A, task_a, target_id=task_a.id, pair=record)
                )
                plan.ledger.remove(record)
                continue

            self._reconcile_pair(plan, record, task_a, task_b)
            processed.add(record.key)

        for task_b in sorted(tasks_b_map.values(), key=lambda task: task.id):
            record = plan.ledger.by_b_id(task_b.id)
            if record is None:
                LOGGER.info("Новая задача в B, создаём в A: %s", task_b.title)
                plan.operations.append(
                    SyncOperation(Action.CREATE, Side.A, task_b, synced_update=task_b.updated)
                )
                continue
            if record.key in processed:
                continue
            LOGGER.info("Удаляем из B (удалена в A): %s", task_b.title)
            plan.operations.append(
                SyncOperation(Action.DELETE, Side.B, task_b, target_id=task_b.id, pair=record)
            )
            plan.ledger.remove(record)

        # обе стороны пары исчезли: сводить больше нечего
        for record in plan.ledger.records():
            if record.account_a_id not in tasks_a_map and record.account_b_id not in tasks_b_map:
                LOGGER.debug("Пара %s удалена в обоих аккаунтах, забываем", record.key)
                plan.ledger.remove(record)

        plan.ledger.last_sync_time = now or utcnow()
        return plan

    @staticmethod
    def _reconcile_pair(plan: SyncPlan, record: PairRecord, task_a: Task, task_b: Task) -> None:
        last_synced = record.last_synced_update
        a_modified = task_a.updated > last_synced
        b_modified = task_b.updated > last_synced

        if not a_modified and not b_modified:
            plan.unchanged += 1
            return

        if a_modified and b_modified:
            # при равных отметках побеждает A
            winner = Side.A if task_a.updated >= task_b.updated else Side.B
            LOGGER.info("Конфликт разрешён: %s -> %s (%s)", winner.value, winner.other.value, task_a.title)
        else:
            winner = Side.A if a_modified else Side.B

        source, destination = (task_a, task_b) if winner is Side.A else (task_b, task_a)
        if content_key(source) == content_key(destination):
            LOGGER.debug("Содержимое совпадает, запись не нужна: %s", source.title)
            plan.ledger.touch(record, source.updated)
            plan.skipped += 1
            return

        LOGGER.info("Синхронизация %s -> %s: %s", winner.value, winner.other.value, source.title)
        plan.operations.append(
            SyncOperation(
                Action.UPDATE,
                winner.other,
                source,
                target_id=destination.id,
                pair=record,
                synced_update=source.updated,
            )
        )


__all__ = ["Reconciler", "SyncPlan", "SyncOperation", "Side", "Action", "content_key"]
