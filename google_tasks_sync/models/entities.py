"""Определения доменных сущностей."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

STATUS_NEEDS_ACTION = "needsAction"


@dataclass(slots=True)
class TaskList:
    """Список задач одного аккаунта."""

    id: str
    title: str


@dataclass(slots=True)
class Task:
    """Задача Google Tasks в том виде, в каком её хранит один аккаунт."""

    id: str
    title: str
    updated: datetime
    status: str = STATUS_NEEDS_ACTION
    notes: Optional[str] = None
    due: Optional[datetime] = None
    completed: Optional[datetime] = None
    parent: Optional[str] = None
    position: Optional[str] = None


@dataclass(slots=True)
class PairRecord:
    """Соответствие задачи аккаунта A задаче аккаунта B."""

    account_a_id: str
    account_b_id: str
    last_synced_update: datetime

    @property
    def key(self) -> str:
        return f"{self.account_a_id}-{self.account_b_id}"


__all__ = ["Task", "TaskList", "PairRecord", "STATUS_NEEDS_ACTION"]
