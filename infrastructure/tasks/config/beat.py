"""Celery beat schedule for ledger maintenance."""
from __future__ import annotations

from celery.schedules import crontab

CELERY_BEAT_SCHEDULE = {
    # drop abandoned checkouts; non-pending rows are never touched
    "ledger-cleanup-stale-pending": {
        "task": "payments.cleanup_stale_pending",
        "schedule": crontab(hour=3, minute=0),
    },
    # hourly run over a two hour window, so every settled row gets two chances
    "ledger-resync-admin-portal": {
        "task": "payments.resync_admin_portal",
        "schedule": crontab(minute=30),
        "kwargs": {"window_hours": 2, "limit": 100},
    },
}
