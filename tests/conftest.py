# tests/conftest.py

from __future__ import annotations

from pathlib import Path

import pytest

from google_tasks_sync.config import AppConfig
from google_tasks_sync.services import LedgerStore, TaskSyncService

from .fakes import FakeClock, FakeTasksClient


@pytest.fixture()
def config(tmp_path: Path) -> AppConfig:
    credentials = {"client_id": "client", "client_secret": "secret"}
    return AppConfig.model_validate(
        {
            "account_a": {"label": "A", "refresh_token": "token-a", **credentials},
            "account_b": {"label": "B", "refresh_token": "token-b", **credentials},
            "retry": {"max_retries": 2, "initial_delay": 0},
            "state_db": tmp_path / "state.sqlite",
        }
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def client_a(clock: FakeClock) -> FakeTasksClient:
    return FakeTasksClient("A", clock)


@pytest.fixture()
def client_b(clock: FakeClock) -> FakeTasksClient:
    return FakeTasksClient("B", clock)


@pytest.fixture()
def ledger_store(config: AppConfig):
    store = LedgerStore(config.state_db)
    yield store
    store.close()


@pytest.fixture()
def service(
    config: AppConfig,
    client_a: FakeTasksClient,
    client_b: FakeTasksClient,
    ledger_store: LedgerStore,
) -> TaskSyncService:
    return TaskSyncService(config, client_a, client_b, ledger_store)
