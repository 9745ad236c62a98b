"""Read-side ledger queries and maintenance jobs"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from application.dtos.payments import (
    CleanupResult,
    SyncReport,
    TransactionDTO,
    TransactionListResult,
    TransactionStatsDTO,
)
from application.ports.admin_notifier import AdminNotifier
from core.logging_config import get_logger
from domain.common.exceptions import DomainValidationException, TransactionNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payment.entity import PaymentStatus


logger = get_logger(__name__)

_RESYNC_STATUSES = (PaymentStatus.SUCCESS, PaymentStatus.REFUNDED)


class LedgerService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        *,
        notifier: Optional[AdminNotifier] = None,
        default_page_size: int = 50,
        max_page_size: int = 100,
    ) -> None:
        self.uow_factory = uow_factory
        self.notifier = notifier
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    def _page(self, limit: Optional[int], offset: Optional[int]) -> tuple[int, int]:
        limit = self.default_page_size if limit is None else limit
        offset = 0 if offset is None else offset
        if limit < 1:
            raise DomainValidationException("limit must be at least 1", field="limit")
        if offset < 0:
            raise DomainValidationException("offset must not be negative", field="offset")
        return min(limit, self.max_page_size), offset

    async def get_transaction(self, transaction_id: str) -> TransactionDTO:
        async with self.uow_factory(readonly=True) as uow:
            tx = await uow.transactions.get_by_transaction_id(transaction_id)
        if tx is None:
            raise TransactionNotFoundException(transaction_id=transaction_id)
        return TransactionDTO.from_entity(tx)

    async def list_transactions(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        status: Optional[str] = None,
    ) -> TransactionListResult:
        limit, offset = self._page(limit, offset)
        status_filter = None
        if status:
            try:
                status_filter = PaymentStatus(status.lower())
            except ValueError:
                raise DomainValidationException(f"Unknown payment status: {status}", field="status")
        async with self.uow_factory(readonly=True) as uow:
            rows = await uow.transactions.list_recent(limit=limit, offset=offset, status=status_filter)
        items = [TransactionDTO.from_entity(r) for r in rows]
        return TransactionListResult(transactions=items, count=len(items), limit=limit, offset=offset)

    async def list_user_transactions(
        self,
        user_id: str,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> TransactionListResult:
        limit, offset = self._page(limit, offset)
        async with self.uow_factory(readonly=True) as uow:
            rows = await uow.transactions.list_by_user(user_id, limit=limit, offset=offset)
        items = [TransactionDTO.from_entity(r) for r in rows]
        return TransactionListResult(transactions=items, count=len(items), limit=limit, offset=offset)

    async def stats(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> TransactionStatsDTO:
        if start and end and start > end:
            raise DomainValidationException("startDate must not be after endDate", field="startDate")
        async with self.uow_factory(readonly=True) as uow:
            s = await uow.transactions.stats(start, end)
        return TransactionStatsDTO(
            total_transactions=s.total_transactions,
            successful_payments=s.successful_payments,
            failed_payments=s.failed_payments,
            pending_payments=s.pending_payments,
            error_payments=s.error_payments,
            refunded_payments=s.refunded_payments,
            total_revenue=s.total_revenue,
            average_transaction_value=s.average_transaction_value,
        )

    async def cleanup_stale_pending(self, days: int = 7) -> CleanupResult:
        """Delete pending rows older than ``days``; other statuses are untouched"""
        if days < 1:
            raise DomainValidationException("days must be at least 1", field="days")
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        async with self.uow_factory() as uow:
            deleted = await uow.transactions.delete_stale_pending(cutoff)
        logger.info("stale_pending_cleanup_finished", deleted=deleted, days=days)
        return CleanupResult(deleted=deleted, older_than=cutoff)

    async def resync_admin_portal(self, window_hours: int = 2, limit: int = 100) -> SyncReport:
        """Re-send recently settled rows to the admin portal.

        Covers success and refunded rows updated within the last
        ``window_hours``, so a notification dropped by the fire-and-forget
        path is delivered on the next run.
        """
        if window_hours < 1:
            raise DomainValidationException("window_hours must be at least 1", field="window_hours")
        if self.notifier is None:
            logger.warning("admin_resync_skipped_no_notifier")
            return SyncReport()
        since = datetime.now(timezone.utc) - timedelta(hours=window_hours)
        async with self.uow_factory(readonly=True) as uow:
            rows = await uow.transactions.list_updated_since(since, _RESYNC_STATUSES, limit=limit)
        report = await self.notifier.batch_sync(rows)
        logger.info(
            "admin_resync_finished",
            window_hours=window_hours,
            rows=len(rows),
            success=report.success,
            failed=report.failed,
        )
        return report
