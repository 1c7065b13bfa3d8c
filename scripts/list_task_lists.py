"""Утилита для получения списков задач обоих аккаунтов Google Tasks."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Iterable, Tuple

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from google_tasks_sync.clients import GoogleTasksClient
from google_tasks_sync.config import AccountCredentials, AppConfig


def _format_table(title: str, rows: Iterable[Tuple[str, str]]) -> str:
    rows = list(rows)
    if not rows:
        return f"{title}: нет данных"
    id_width = max(len(r[0]) for r in rows)
    name_width = max(len(r[1]) for r in rows)
    header = (
        f"{title}:\n"
        f"  {'ID'.ljust(id_width)}  |  {'Title'.ljust(name_width)}\n"
        f"  {'-' * id_width}--+-{'-' * name_width}"
    )
    body = "\n".join(f"  {list_id.ljust(id_width)}  |  {name}" for list_id, name in rows)
    return f"{header}\n{body}"


def collect_task_lists(config: AppConfig, credentials: AccountCredentials) -> list[Tuple[str, str]]:
    client = GoogleTasksClient(credentials, retry=config.retry)
    return [(task_list.id, task_list.title) for task_list in client.list_task_lists()]


def main() -> None:
    parser = argparse.ArgumentParser(description="Выводит списки задач аккаунтов A и/или B")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Путь к YAML конфигурации (по умолчанию переменные окружения)",
    )
    parser.add_argument(
        "--account",
        choices=["a", "b", "both"],
        default="both",
        help="Для какого аккаунта вывести списки",
    )
    args = parser.parse_args()

    config = AppConfig.load(args.config) if args.config else AppConfig.from_env()

    outputs: list[str] = []
    if args.account in ("a", "both"):
        rows = collect_task_lists(config, config.account_a)
        outputs.append(_format_table(f"Account {config.account_a.label}", rows))

    if args.account in ("b", "both"):
        rows = collect_task_lists(config, config.account_b)
        outputs.append(_format_table(f"Account {config.account_b.label}", rows))

    print("\n\n".join(outputs))


if __name__ == "__main__":
    main()
