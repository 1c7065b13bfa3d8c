"""CLI-интерфейс для запуска синхронизации."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer

from google_tasks_sync.clients import GoogleTasksAPIError, GoogleTasksClient
from google_tasks_sync.config import AccountCredentials, AppConfig
from google_tasks_sync.services.ledger_store import LedgerStore
from google_tasks_sync.services.sync import TaskSyncService

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

app = typer.Typer(help="Двусторонняя синхронизация задач Google Tasks A ↔ B")


def configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format=LOG_FORMAT)


def load_config(config_path: Optional[Path]) -> AppConfig:
    """YAML-файл, если он указан, иначе переменные окружения."""
    if config_path is not None:
        return AppConfig.load(config_path)
    return AppConfig.from_env()


def build_client(config: AppConfig, credentials: AccountCredentials) -> GoogleTasksClient:
    return GoogleTasksClient(
        credentials,
        retry=config.retry,
        page_size=config.sync.page_size,
        page_delay=config.sync.page_delay,
    )


def build_service(
    config: AppConfig,
) -> tuple[TaskSyncService, LedgerStore]:
    config.ensure_runtime_dirs()
    ledger_store = LedgerStore(config.state_db)
    client_a = build_client(config, config.account_a)
    client_b = build_client(config, config.account_b)
    service = TaskSyncService(config, client_a, client_b, ledger_store)
    return service, ledger_store


@app.command("sync")
def sync(
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Путь к YAML конфигурации (по умолчанию переменные окружения)"
    ),
    verbosity: int = typer.Option(0, "--verbose", "-v", count=True, help="Уровень логирования"),
    dry_run: Optional[bool] = typer.Option(
        None,
        "--dry-run/--no-dry-run",
        help="Только показать план (по умолчанию берётся из конфигурации)",
    ),
    list_name: Optional[str] = typer.Option(None, "--list-name", help="Название синхронизируемого списка"),
) -> None:
    """Один проход синхронизации."""
    configure_logging(verbosity)
    config = load_config(config_path)
    if dry_run is not None:
        config.sync.dry_run = dry_run
    if list_name:
        config.sync.task_list_name = list_name
    service, store = build_service(config)
    try:
        report = service.run_pass()
    finally:
        store.close()
    typer.echo(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
    if not report.success:
        raise typer.Exit(code=1)


@app.command("verify")
def verify(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c"),
    verbosity: int = typer.Option(0, "--verbose", "-v", count=True),
) -> None:
    """Проверяет доступ к обоим аккаунтам."""
    configure_logging(verbosity)
    config = load_config(config_path)
    failed = False
    for credentials in (config.account_a, config.account_b):
        client = build_client(config, credentials)
        try:
            lists = client.list_task_lists()
        except GoogleTasksAPIError as exc:
            typer.echo(f"Аккаунт {credentials.label}: ошибка: {exc}", err=True)
            failed = True
            continue
        typer.echo(f"Аккаунт {credentials.label}: соединение успешно, списков: {len(lists)}")
    if failed:
        raise typer.Exit(code=1)


@app.command("export-state")
def export_state(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c"),
) -> None:
    """Печатает журнал соответствий в формате sync-state.json."""
    config = load_config(config_path)
    config.ensure_runtime_dirs()
    store = LedgerStore(config.state_db)
    try:
        typer.echo(json.dumps(store.export_dict(), indent=2, ensure_ascii=False))
    finally:
        store.close()


@app.command("import-state")
def import_state(
    source: Path = typer.Argument(..., exists=True, dir_okay=False, help="Файл sync-state.json"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c"),
    verbosity: int = typer.Option(0, "--verbose", "-v", count=True),
) -> None:
    """Загружает журнал из sync-state.json, заменяя текущий."""
    configure_logging(verbosity)
    config = load_config(config_path)
    config.ensure_runtime_dirs()
    store = LedgerStore(config.state_db)
    try:
        ledger = store.import_legacy_json(source)
    finally:
        store.close()
    typer.echo(f"Импортировано пар: {len(ledger)}")


if __name__ == "__main__":
    app()
