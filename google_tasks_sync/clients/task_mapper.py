"""Маппинг задач между Google Tasks API и внутренними моделями."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

from google_tasks_sync.models import STATUS_NEEDS_ACTION, Task, TaskList
from google_tasks_sync.timestamps import EPOCH, format_timestamp, parse_timestamp

# Поля, которые переносятся между аккаунтами
SYNCED_FIELDS = ("title", "notes", "status", "due")


class TaskMapper:
    """Конвертация данных между API и внутренними моделями."""

    @staticmethod
    def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
        return parse_timestamp(value)

    def map_task(self, payload: Dict) -> Task:
        return Task(
            id=str(payload["id"]),
            title=payload.get("title") or "",
            notes=payload.get("notes") or None,
            status=payload.get("status") or STATUS_NEEDS_ACTION,
            due=self._parse_datetime(payload.get("due")),
            completed=self._parse_datetime(payload.get("completed")),
            updated=self._parse_datetime(payload.get("updated")) or EPOCH,
            parent=payload.get("parent"),
            position=payload.get("position"),
        )

    def map_task_list(self, payload: Dict) -> TaskList:
        return TaskList(id=str(payload["id"]), title=payload.get("title") or "")

    def to_payload(self, task: Task, *, task_id: Optional[str] = None) -> Dict:
        """Тело запроса create/update: только синхронизируемые поля.

        Пустые поля не передаются; при полном обновлении (PUT) API их очищает.
        """
        payload: Dict[str, object] = {"title": task.title, "status": task.status}
        if task_id:
            payload["id"] = task_id
        if task.notes:
            payload["notes"] = task.notes
        if task.due:
            payload["due"] = format_timestamp(task.due)
        return payload


__all__ = ["TaskMapper", "SYNCED_FIELDS"]
