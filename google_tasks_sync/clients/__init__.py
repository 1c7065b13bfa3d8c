"""Клиенты внешних API."""

from .errors import (
    BadRequestError,
    FatalError,
    GoogleTasksAPIError,
    NotFoundError,
    TransientError,
)
from .google_tasks import GoogleTasksClient, TaskPage
from .task_mapper import SYNCED_FIELDS, TaskMapper

__all__ = [
    "GoogleTasksClient",
    "TaskPage",
    "TaskMapper",
    "SYNCED_FIELDS",
    "GoogleTasksAPIError",
    "TransientError",
    "NotFoundError",
    "BadRequestError",
    "FatalError",
]
