"""Ledger maintenance Celery tasks"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from celery import shared_task

from application.services.ledger_service import LedgerService
from core.config import settings
from core.logging_config import get_logger
from core.settings import payment_settings
from infrastructure.database import Database
from infrastructure.external.admin_portal import AdminPortalClient
from infrastructure.unit_of_work import uow_factory
from ..utils.base_task import BaseTask

logger = get_logger(__name__)


@asynccontextmanager
async def build_ledger_service() -> AsyncIterator[LedgerService]:
    """A LedgerService wired to its own database handle and portal client"""
    database = Database.from_settings()
    database.connect()
    notifier = AdminPortalClient.from_settings(payment_settings)
    try:
        yield LedgerService(
            uow_factory(database),
            notifier=notifier,
            default_page_size=settings.DEFAULT_PAGE_SIZE,
            max_page_size=settings.MAX_PAGE_SIZE,
        )
    finally:
        await notifier.aclose()
        await database.disconnect()


@shared_task(
    name="payments.cleanup_stale_pending",
    bind=True,
    base=BaseTask,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def cleanup_stale_pending(self, days: Optional[int] = None) -> dict:
    """Delete pending rows older than ``days`` (default from settings)"""
    days = days or payment_settings.ledger.pending_retention_days

    async def _run():
        async with build_ledger_service() as service:
            return await service.cleanup_stale_pending(days)

    result = self.run_async(_run)
    logger.info("stale_pending_cleanup_task_done", deleted=result.deleted, days=days)
    return {"deleted": result.deleted, "older_than": result.older_than.isoformat()}


@shared_task(
    name="payments.resync_admin_portal",
    bind=True,
    base=BaseTask,
    max_retries=0,
)
def resync_admin_portal(self, window_hours: int = 2, limit: int = 100) -> dict:
    """Push recently settled payments and refunds to the admin portal again"""

    async def _run():
        async with build_ledger_service() as service:
            return await service.resync_admin_portal(window_hours=window_hours, limit=limit)

    report = self.run_async(_run)
    return report.model_dump()
