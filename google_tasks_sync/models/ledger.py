"""Журнал соответствий задач между аккаунтами."""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterator, List, Optional

from google_tasks_sync.models.entities import PairRecord
from google_tasks_sync.timestamps import EPOCH, format_timestamp, parse_timestamp

LOGGER = logging.getLogger(__name__)


class LedgerConflictError(ValueError):
    """Попытка связать задачу, которая уже входит в другую пару."""


class PairingLedger:
    """Набор пар с индексами по идентификаторам обеих сторон.

    Каждый идентификатор задачи в любом из аккаунтов встречается не более
    чем в одной паре: ``add`` отклоняет запись, нарушающую это правило.
    """

    def __init__(
        self,
        records: Optional[List[PairRecord]] = None,
        last_sync_time: datetime = EPOCH,
    ) -> None:
        self._by_a: Dict[str, PairRecord] = {}
        self._by_b: Dict[str, PairRecord] = {}
        self.last_sync_time = last_sync_time
        for record in records or []:
            self.add(record)

    def __len__(self) -> int:
        return len(self._by_a)

    def __iter__(self) -> Iterator[PairRecord]:
        return iter(self.records())

    def __contains__(self, record: object) -> bool:
        return isinstance(record, PairRecord) and self._by_a.get(record.account_a_id) is record

    # region lookups
    def by_a_id(self, task_id: str) -> Optional[PairRecord]:
        return self._by_a.get(task_id)

    def by_b_id(self, task_id: str) -> Optional[PairRecord]:
        return self._by_b.get(task_id)

    def records(self) -> List[PairRecord]:
        """Пары в стабильном порядке (по ключу пары)."""
        return sorted(self._by_a.values(), key=lambda record: record.key)

    # endregion

    # region mutations
    def add(self, record: PairRecord) -> PairRecord:
        if record.account_a_id in self._by_a:
            raise LedgerConflictError(f"Задача A {record.account_a_id} уже связана")
        if record.account_b_id in self._by_b:
            raise LedgerConflictError(f"Задача B {record.account_b_id} уже связана")
        self._by_a[record.account_a_id] = record
        self._by_b[record.account_b_id] = record
        return record

    def remove(self, record: PairRecord) -> bool:
        """Удаляет пару; возвращает False, если её уже нет в журнале."""
        current = self._by_a.get(record.account_a_id)
        if current is None or current.account_b_id != record.account_b_id:
            return False
        del self._by_a[current.account_a_id]
        del self._by_b[current.account_b_id]
        return True

    def touch(self, record: PairRecord, synced_update: datetime) -> bool:
        """Сдвигает отметку последней синхронизации пары."""
        current = self._by_a.get(record.account_a_id)
        if current is None or current.account_b_id != record.account_b_id:
            return False
        current.last_synced_update = synced_update
        return True

    def copy(self) -> "PairingLedger":
        return PairingLedger([replace(record) for record in self.records()], self.last_sync_time)

    # endregion

    # region serialization
    def to_dict(self) -> Dict:
        return {
            "tasks": {
                record.key: {
                    "accountAId": record.account_a_id,
                    "accountBId": record.account_b_id,
                    "lastSyncedUpdate": format_timestamp(record.last_synced_update),
                }
                for record in self.records()
            },
            "lastSyncTime": format_timestamp(self.last_sync_time),
        }

    @classmethod
    def from_dict(cls, payload: Dict) -> "PairingLedger":
        """Восстанавливает журнал; битые и дублирующиеся записи пропускаются."""
        try:
            last_sync_time = parse_timestamp(payload.get("lastSyncTime")) or EPOCH
        except (TypeError, ValueError):
            LOGGER.warning("Некорректное lastSyncTime %r, используем начало эпохи", payload.get("lastSyncTime"))
            last_sync_time = EPOCH
        ledger = cls(last_sync_time=last_sync_time)
        for key, item in (payload.get("tasks") or {}).items():
            try:
                record = PairRecord(
                    account_a_id=str(item["accountAId"]),
                    account_b_id=str(item["accountBId"]),
                    last_synced_update=parse_timestamp(item["lastSyncedUpdate"]) or EPOCH,
                )
                ledger.add(record)
            except (KeyError, TypeError, ValueError) as exc:
                LOGGER.warning("Пропуск записи журнала %s: %s", key, exc)
        return ledger

    # endregion


__all__ = ["PairingLedger", "LedgerConflictError"]
