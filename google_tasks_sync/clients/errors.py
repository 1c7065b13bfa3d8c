"""Классификация ошибок Google Tasks API."""
from __future__ import annotations

from typing import Iterable, Optional

RATE_LIMIT_REASONS = frozenset({"rateLimitExceeded", "userRateLimitExceeded"})


class GoogleTasksAPIError(RuntimeError):
    """Ошибка Google Tasks API."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientError(GoogleTasksAPIError):
    """Лимит запросов, 5xx или обрыв соединения: запрос можно повторить."""


class NotFoundError(GoogleTasksAPIError):
    """Объект уже отсутствует на стороне API."""


class BadRequestError(GoogleTasksAPIError):
    """API отклонило запрос как некорректный."""


class FatalError(GoogleTasksAPIError):
    """Прочие ошибки, повтор которых не имеет смысла."""


def error_for_status(status_code: int, message: str, reasons: Iterable[str] = ()) -> GoogleTasksAPIError:
    """Подбирает класс исключения по HTTP-коду ответа.

    Google отвечает 403 и при превышении квоты: такие ответы отличаются
    только полем ``error.errors[].reason``.
    """
    if status_code == 429 or 500 <= status_code < 600:
        return TransientError(message, status_code)
    if status_code == 403 and RATE_LIMIT_REASONS.intersection(reasons):
        return TransientError(message, status_code)
    if status_code in (404, 410):
        return NotFoundError(message, status_code)
    if status_code == 400:
        return BadRequestError(message, status_code)
    return FatalError(message, status_code)


__all__ = [
    "GoogleTasksAPIError",
    "TransientError",
    "NotFoundError",
    "BadRequestError",
    "FatalError",
    "error_for_status",
    "RATE_LIMIT_REASONS",
]
