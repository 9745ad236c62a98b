from contextlib import asynccontextmanager
from datetime import datetime, timezone

from application.dtos.payments import CleanupResult, SyncReport
from infrastructure.tasks.config.beat import CELERY_BEAT_SCHEDULE
from infrastructure.tasks.tasks import ledger as ledger_tasks


class FakeLedger:
    def __init__(self):
        self.calls = []

    async def cleanup_stale_pending(self, days):
        self.calls.append(("cleanup", days))
        return CleanupResult(deleted=3, older_than=datetime(2026, 1, 1, tzinfo=timezone.utc))

    async def resync_admin_portal(self, window_hours, limit):
        self.calls.append(("resync", window_hours, limit))
        return SyncReport(success=2, failed=1, errors=[{"transactionId": "txn_1", "error": "down"}])


def _patch(monkeypatch):
    fake = FakeLedger()

    @asynccontextmanager
    async def build():
        yield fake

    monkeypatch.setattr(ledger_tasks, "build_ledger_service", build)
    return fake


def test_cleanup_task_uses_retention_default(monkeypatch):
    fake = _patch(monkeypatch)

    result = ledger_tasks.cleanup_stale_pending.apply().get()

    assert result == {"deleted": 3, "older_than": "2026-01-01T00:00:00+00:00"}
    assert fake.calls == [("cleanup", 7)]


def test_cleanup_task_accepts_days(monkeypatch):
    fake = _patch(monkeypatch)
    ledger_tasks.cleanup_stale_pending.apply(kwargs={"days": 30}).get()
    assert fake.calls == [("cleanup", 30)]


def test_resync_task_returns_report(monkeypatch):
    fake = _patch(monkeypatch)

    result = ledger_tasks.resync_admin_portal.apply(kwargs={"limit": 20}).get()

    assert result["success"] == 2
    assert result["failed"] == 1
    assert fake.calls == [("resync", 2, 20)]


def test_beat_schedule_names_registered_tasks():
    names = {entry["task"] for entry in CELERY_BEAT_SCHEDULE.values()}
    assert names == {ledger_tasks.cleanup_stale_pending.name, ledger_tasks.resync_admin_portal.name}


def test_beat_resync_kwargs_match_task_signature(monkeypatch):
    fake = _patch(monkeypatch)
    entry = CELERY_BEAT_SCHEDULE["ledger-resync-admin-portal"]

    ledger_tasks.resync_admin_portal.apply(kwargs=entry["kwargs"]).get()

    assert fake.calls == [("resync", entry["kwargs"]["window_hours"], entry["kwargs"]["limit"])]
