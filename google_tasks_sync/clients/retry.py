"""Повтор запросов с экспоненциальной паузой при временных ошибках."""
from __future__ import annotations

import functools
import logging
import time
from typing import Callable, Optional, TypeVar

from tenacity import Retrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_exponential

from google_tasks_sync.clients.errors import TransientError
from google_tasks_sync.config import RetryOptions

LOGGER = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable)


def build_retrying(options: RetryOptions, sleep: Optional[Callable[[float], None]] = None) -> Retrying:
    """Паузы: initial_delay, затем x2 на каждой попытке (1, 2, 4, 8, 16 с по умолчанию)."""
    return Retrying(
        retry=retry_if_exception_type(TransientError),
        stop=stop_after_attempt(options.max_retries + 1),
        wait=wait_exponential(multiplier=options.initial_delay, min=0),
        sleep=sleep or time.sleep,
        before_sleep=before_sleep_log(LOGGER, logging.WARNING),
        reraise=True,
    )


def retry_transient(method: F) -> F:
    """Декоратор метода клиента.

    Политика берётся из ``self.retry_options``, функция паузы из
    ``self._sleep``, так что у каждого клиента она своя.
    """

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        retrying = build_retrying(self.retry_options, sleep=getattr(self, "_sleep", None))
        return retrying(method, self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


__all__ = ["retry_transient", "build_retrying"]
