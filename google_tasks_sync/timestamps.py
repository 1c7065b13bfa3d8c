"""Разбор и форматирование временных меток Google Tasks."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from dateutil import parser

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Разбирает RFC3339-строку в aware-datetime (UTC) с точностью до миллисекунд."""
    if not value:
        return None
    moment = parser.isoparse(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.replace(microsecond=moment.microsecond // 1000 * 1000)


def format_timestamp(moment: Optional[datetime]) -> Optional[str]:
    if moment is None:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def utcnow() -> datetime:
    moment = datetime.now(timezone.utc)
    return moment.replace(microsecond=moment.microsecond // 1000 * 1000)


__all__ = ["EPOCH", "parse_timestamp", "format_timestamp", "utcnow"]
