"""
Transaction ledger repository interface.

Every write is a single guarded statement touching one row identified by a
unique key. Missing rows are reported as ``None`` rather than raised.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Sequence

from .entity import Transaction, PaymentStatus


@dataclass(frozen=True)
class TransactionStats:
    total_transactions: int
    successful_payments: int
    failed_payments: int
    pending_payments: int
    error_payments: int
    refunded_payments: int
    total_revenue: Decimal
    average_transaction_value: Optional[Decimal]


class TransactionRepository(ABC):
    """Ledger contract - what can be done, not how."""

    @abstractmethod
    async def create(self, transaction: Transaction) -> Transaction:
        """Insert a new pending row"""
        pass

    @abstractmethod
    async def mark_paid(
        self,
        order_id: str,
        *,
        payment_id: str,
        payment_method: Optional[str],
        signature: Optional[str],
        verified_at: datetime,
    ) -> Optional[Transaction]:
        """Move a pending row to success, stamping payment fields"""
        pass

    @abstractmethod
    async def update_status(
        self,
        order_id: str,
        status: PaymentStatus,
        *,
        error_code: Optional[str] = None,
        error_description: Optional[str] = None,
    ) -> Optional[Transaction]:
        """Move a row to ``status`` if it currently holds an allowed predecessor"""
        pass

    @abstractmethod
    async def mark_refunded(
        self,
        payment_id: str,
        *,
        refund_id: str,
        refund_amount: Decimal,
        refunded_at: datetime,
    ) -> Optional[Transaction]:
        """Move a success row to refunded, stamping refund fields"""
        pass

    @abstractmethod
    async def get_by_order_id(self, order_id: str) -> Optional[Transaction]:
        pass

    @abstractmethod
    async def get_by_payment_id(self, payment_id: str) -> Optional[Transaction]:
        pass

    @abstractmethod
    async def get_by_transaction_id(self, transaction_id: str) -> Optional[Transaction]:
        pass

    @abstractmethod
    async def list_recent(
        self,
        limit: int = 50,
        offset: int = 0,
        status: Optional[PaymentStatus] = None,
    ) -> List[Transaction]:
        """Newest first, optionally filtered by status"""
        pass

    @abstractmethod
    async def list_updated_since(
        self,
        since: datetime,
        statuses: Sequence[PaymentStatus],
        limit: int = 100,
    ) -> List[Transaction]:
        """Rows in ``statuses`` touched at or after ``since``, most recently updated first"""
        pass

    @abstractmethod
    async def list_by_user(self, user_id: str, limit: int = 50, offset: int = 0) -> List[Transaction]:
        pass

    @abstractmethod
    async def stats(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> TransactionStats:
        pass

    @abstractmethod
    async def delete_stale_pending(self, older_than: datetime) -> int:
        """Delete pending rows created before ``older_than``; returns the count"""
        pass
