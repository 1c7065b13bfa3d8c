# tests/test_sync_service.py

from __future__ import annotations

import logging
import sqlite3

import requests

from google_tasks_sync.clients import BadRequestError, NotFoundError, TransientError
from google_tasks_sync.models import PairingLedger, PairRecord, TaskList

from .fakes import FakeTasksClient, make_task, ts


def test_end_to_end_new_task_is_created_and_paired(service, client_a, client_b, ledger_store) -> None:
    client_a.seed(make_task("a1", "Buy milk", "2024-01-01T00:00:00Z"))

    report = service.run_pass()

    assert report.success is True
    assert report.ledger_saved is True
    assert report.stats.created == 1
    assert client_b.writes() == [("create_task", "list-1", "Buy milk")]
    (created_id,) = client_b.tasks["list-1"].keys()

    ledger = ledger_store.load()
    record = ledger.by_a_id("a1")
    assert record.account_b_id == created_id
    assert record.last_synced_update == ts("2024-01-01T00:00:00Z")
    assert ledger.last_sync_time == report.started_at


def test_second_pass_issues_no_writes(service, client_a, client_b) -> None:
    client_a.seed(make_task("a1", "Buy milk"))
    client_b.seed(make_task("b1", "Walk the dog", notes="twice"))
    service.run_pass()
    client_a.calls.clear()
    client_b.calls.clear()

    second = service.run_pass()
    third = service.run_pass()

    assert client_a.writes() == []
    assert client_b.writes() == []
    assert second.stats.created == second.stats.updated == second.stats.deleted == 0
    assert third.stats.skipped == 0
    assert third.stats.unchanged == 2


def test_edit_in_b_propagates_to_a(service, client_a, client_b) -> None:
    client_a.seed(make_task("a1", "Buy milk"))
    service.run_pass()
    (b_id,) = client_b.tasks["list-1"].keys()

    client_b.edit(b_id, title="Buy oat milk", status="completed")
    report = service.run_pass()

    assert report.stats.updated == 1
    task_a = client_a.tasks["list-1"]["a1"]
    assert (task_a.title, task_a.status) == ("Buy oat milk", "completed")

    client_a.calls.clear()
    client_b.calls.clear()
    service.run_pass()
    assert client_a.writes() == client_b.writes() == []


def test_concurrent_edits_resolve_to_latest(service, client_a, client_b) -> None:
    client_a.seed(make_task("a1", "Original"))
    service.run_pass()
    (b_id,) = client_b.tasks["list-1"].keys()

    client_a.edit("a1", title="Older edit in A")
    client_b.edit(b_id, title="Newer edit in B")
    service.run_pass()

    assert client_a.tasks["list-1"]["a1"].title == "Newer edit in B"
    assert client_b.tasks["list-1"][b_id].title == "Newer edit in B"


def test_deletion_in_b_removes_task_from_a(service, client_a, client_b, ledger_store) -> None:
    client_a.seed(make_task("a1", "Temporary"))
    service.run_pass()
    (b_id,) = client_b.tasks["list-1"].keys()

    client_b.remove(b_id)
    report = service.run_pass()

    assert report.stats.deleted == 1
    assert client_a.tasks["list-1"] == {}
    assert len(ledger_store.load()) == 0

    again = service.run_pass()
    assert again.success is True
    assert again.stats.deleted == 0


def test_delete_of_already_missing_task_counts_as_success(service, client_a, client_b, ledger_store) -> None:
    ledger_store.save(PairingLedger([PairRecord("a1", "b1", ts("2024-01-01T00:00:00Z"))]))
    client_a.seed(make_task("a1", "Stale"))
    client_a.failures[("delete_task", "a1")] = NotFoundError("gone", 404)

    report = service.run_pass()

    assert report.stats.deleted == 1
    assert report.stats.failed == 0
    assert len(ledger_store.load()) == 0


def test_failed_create_does_not_stop_other_tasks(service, client_a, client_b, ledger_store) -> None:
    client_a.seed(make_task("a1", "Will fail"))
    client_a.seed(make_task("a2", "Will succeed"))
    client_b.failures[("create_task", "a1")] = TransientError("rate limited", 429)

    report = service.run_pass()

    assert report.success is True
    assert report.stats.failed == 1
    assert report.stats.created == 1
    ledger = ledger_store.load()
    assert ledger.by_a_id("a1") is None
    assert ledger.by_a_id("a2") is not None


def test_unexpected_error_in_create_does_not_stop_other_tasks(service, client_a, client_b, ledger_store) -> None:
    client_a.seed(make_task("a1", "Will fail"))
    client_a.seed(make_task("a2", "Will succeed"))
    client_b.failures[("create_task", "a1")] = requests.exceptions.ChunkedEncodingError("connection reset")

    report = service.run_pass()

    assert report.success is True
    assert report.ledger_saved is True
    assert report.stats.created == 1
    assert report.stats.failed == 1
    ledger = ledger_store.load()
    assert ledger.by_a_id("a1") is None
    assert ledger.by_a_id("a2") is not None


def test_unexpected_error_in_delete_keeps_pair_for_retry(service, client_a, ledger_store) -> None:
    ledger_store.save(PairingLedger([PairRecord("a1", "b1", ts("2024-01-01T00:00:00Z"))]))
    client_a.seed(make_task("a1", "Deleted in B"))
    client_a.failures[("delete_task", "a1")] = KeyError("id")

    report = service.run_pass()

    assert report.stats.failed == 1
    assert ledger_store.load().by_a_id("a1") is not None


def test_unexpected_error_outside_operations_is_reported(service, client_a, monkeypatch) -> None:
    def broken_listing(task_list_id):
        raise AttributeError("'list' object has no attribute 'get'")

    monkeypatch.setattr(client_a, "list_all_tasks", broken_listing)

    report = service.run_pass()

    assert report.success is False
    assert report.ledger_saved is False
    assert report.error.startswith("AttributeError")


def test_update_not_found_evicts_pair(service, client_a, client_b, ledger_store) -> None:
    ledger_store.save(PairingLedger([PairRecord("a1", "b1", ts("2024-01-01T00:00:00Z"))]))
    client_a.seed(make_task("a1", "Edited", "2024-01-05T00:00:00Z"))
    client_b.seed(make_task("b1", "Original", "2024-01-01T00:00:00Z"))
    client_b.failures[("update_task", "b1")] = NotFoundError("gone", 404)

    report = service.run_pass()

    assert report.success is True
    assert report.stats.failed == 1
    assert ledger_store.load().by_a_id("a1") is None


def test_update_bad_request_evicts_pair(service, client_a, client_b, ledger_store) -> None:
    ledger_store.save(PairingLedger([PairRecord("a1", "b1", ts("2024-01-01T00:00:00Z"))]))
    client_a.seed(make_task("a1", "Original", "2024-01-01T00:00:00Z"))
    client_b.seed(make_task("b1", "Edited", "2024-01-05T00:00:00Z"))
    client_a.failures[("update_task", "a1")] = BadRequestError("bad", 400)

    service.run_pass()

    assert len(ledger_store.load()) == 0


def test_transient_update_failure_keeps_pair_for_next_pass(service, client_a, client_b, ledger_store) -> None:
    synced = ts("2024-01-01T00:00:00Z")
    ledger_store.save(PairingLedger([PairRecord("a1", "b1", synced)]))
    client_a.seed(make_task("a1", "Edited", "2024-01-05T00:00:00Z"))
    client_b.seed(make_task("b1", "Original", "2024-01-01T00:00:00Z"))
    client_b.failures[("update_task", "b1")] = TransientError("unavailable", 503)

    service.run_pass()
    assert ledger_store.load().by_a_id("a1").last_synced_update == synced

    service.run_pass()
    assert client_b.tasks["list-1"]["b1"].title == "Edited"


def test_failed_delete_keeps_pair_for_retry(service, client_a, client_b, ledger_store) -> None:
    ledger_store.save(PairingLedger([PairRecord("a1", "b1", ts("2024-01-01T00:00:00Z"))]))
    client_a.seed(make_task("a1", "Deleted in B"))
    client_a.failures[("delete_task", "a1")] = TransientError("unavailable", 503)

    first = service.run_pass()
    assert first.stats.failed == 1
    assert ledger_store.load().by_a_id("a1") is not None

    second = service.run_pass()
    assert second.stats.deleted == 1
    assert client_a.tasks["list-1"] == {}
    assert client_b.writes() == []


def test_dry_run_reports_plan_without_writes(config, client_a, client_b, ledger_store) -> None:
    from google_tasks_sync.services import TaskSyncService

    config.sync.dry_run = True
    service = TaskSyncService(config, client_a, client_b, ledger_store)
    client_a.seed(make_task("a1", "Buy milk"))

    report = service.run_pass()

    assert report.success is True
    assert report.dry_run is True
    assert report.ledger_saved is False
    assert report.stats.created == 1
    assert client_b.writes() == []
    assert len(ledger_store.load()) == 0


def test_named_task_list_is_selected_in_both_accounts(config, clock, ledger_store) -> None:
    from google_tasks_sync.services import TaskSyncService

    lists = [TaskList("default", "My Tasks"), TaskList("work", "Work")]
    client_a = FakeTasksClient("A", clock, task_lists=lists)
    client_b = FakeTasksClient("B", clock, task_lists=lists)
    config.sync.task_list_name = "Work"
    client_a.seed(make_task("a1", "Report"), task_list_id="work")

    report = TaskSyncService(config, client_a, client_b, ledger_store).run_pass()

    assert (report.task_list_a, report.task_list_b) == ("Work", "Work")
    assert client_b.writes() == [("create_task", "work", "Report")]


def test_missing_named_list_falls_back_to_first(config, clock, ledger_store, caplog) -> None:
    from google_tasks_sync.services import TaskSyncService

    client_a = FakeTasksClient("A", clock, task_lists=[TaskList("default", "My Tasks"), TaskList("work", "Work")])
    client_b = FakeTasksClient("B", clock, task_lists=[TaskList("inbox", "Inbox")])
    config.sync.task_list_name = "Work"

    with caplog.at_level(logging.WARNING):
        report = TaskSyncService(config, client_a, client_b, ledger_store).run_pass()

    assert (report.task_list_a, report.task_list_b) == ("My Tasks", "Inbox")
    assert any(record.levelno == logging.WARNING for record in caplog.records)


def test_no_task_lists_fails_the_pass(config, clock, ledger_store) -> None:
    from google_tasks_sync.services import TaskSyncService

    client_a = FakeTasksClient("A", clock)
    client_b = FakeTasksClient("B", clock)
    client_b.task_lists = []

    report = TaskSyncService(config, client_a, client_b, ledger_store).run_pass()

    assert report.success is False
    assert report.ledger_saved is False
    assert report.error


def test_ledger_save_failure_is_reported(service, client_a, ledger_store, monkeypatch) -> None:
    client_a.seed(make_task("a1", "Buy milk"))

    def broken_save(ledger) -> None:
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(ledger_store, "save", broken_save)

    report = service.run_pass()

    assert report.success is False
    assert report.ledger_saved is False
    assert "disk I/O error" in report.error
