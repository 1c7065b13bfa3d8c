"""Хранилище журнала соответствий задач."""
from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Dict

from google_tasks_sync.models import PairingLedger
from google_tasks_sync.timestamps import EPOCH, format_timestamp

LOGGER = logging.getLogger(__name__)


class LedgerStore:
    """Обёртка над SQLite для хранения пар задач A ↔ B между запусками."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._conn = self._open()

    def close(self) -> None:
        self._conn.close()

    # region schema
    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path)
        try:
            self._init_schema(conn)
            conn.execute("SELECT COUNT(*) FROM pairs").fetchone()
        except sqlite3.DatabaseError as exc:
            conn.close()
            if not self._path.exists():
                raise
            corrupt_path = self._path.with_name(self._path.name + ".corrupt")
            LOGGER.warning(
                "База состояния %s повреждена (%s), переносим в %s и начинаем заново",
                self._path,
                exc,
                corrupt_path,
            )
            self._path.replace(corrupt_path)
            conn = sqlite3.connect(self._path)
            self._init_schema(conn)
        return conn

    @staticmethod
    def _init_schema(conn: sqlite3.Connection) -> None:
        with closing(conn.cursor()) as cursor:
            cursor.executescript(
                """
                CREATE TABLE IF NOT EXISTS pairs (
                    pair_key TEXT PRIMARY KEY,
                    account_a_id TEXT NOT NULL UNIQUE,
                    account_b_id TEXT NOT NULL UNIQUE,
                    last_synced_update TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS sync_state (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    last_sync_time TEXT
                );
                """
            )
            conn.commit()

    # endregion

    # region ledger
    def load(self) -> PairingLedger:
        """Читает журнал; при нечитаемых данных возвращает пустой."""
        try:
            rows = self._conn.execute(
                "SELECT account_a_id, account_b_id, last_synced_update FROM pairs ORDER BY pair_key"
            ).fetchall()
            state = self._conn.execute("SELECT last_sync_time FROM sync_state WHERE id = 1").fetchone()
        except sqlite3.DatabaseError as exc:
            LOGGER.warning("Не удалось прочитать состояние синхронизации (%s), начинаем заново", exc)
            return PairingLedger()

        payload: Dict = {
            "tasks": {
                f"{a_id}-{b_id}": {"accountAId": a_id, "accountBId": b_id, "lastSyncedUpdate": synced}
                for a_id, b_id, synced in rows
            },
            "lastSyncTime": state[0] if state else None,
        }
        ledger = PairingLedger.from_dict(payload)
        if rows:
            LOGGER.info("Загружено состояние синхронизации: %s пар", len(ledger))
        else:
            LOGGER.info("Сохранённого состояния нет, начинаем с чистого листа")
        return ledger

    def save(self, ledger: PairingLedger) -> None:
        """Заменяет сохранённый журнал целиком в одной транзакции."""
        rows = [
            (
                record.key,
                record.account_a_id,
                record.account_b_id,
                format_timestamp(record.last_synced_update),
            )
            for record in ledger.records()
        ]
        with self._conn:
            self._conn.execute("DELETE FROM pairs")
            self._conn.executemany(
                "INSERT INTO pairs (pair_key, account_a_id, account_b_id, last_synced_update) VALUES (?, ?, ?, ?)",
                rows,
            )
            self._conn.execute(
                "INSERT INTO sync_state (id, last_sync_time) VALUES (1, ?)\n"
                "ON CONFLICT(id) DO UPDATE SET last_sync_time = excluded.last_sync_time",
                (format_timestamp(ledger.last_sync_time or EPOCH),),
            )
        LOGGER.info("Состояние синхронизации сохранено: %s пар", len(rows))

    # endregion

    # region import / export
    def export_dict(self) -> Dict:
        return self.load().to_dict()

    def import_legacy_json(self, path: Path | str) -> PairingLedger:
        """Переносит состояние из sync-state.json (формат исходной утилиты)."""
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        ledger = PairingLedger.from_dict(payload)
        self.save(ledger)
        return ledger

    # endregion


__all__ = ["LedgerStore"]
