"""Outbound admin-system notification port"""
from __future__ import annotations

from typing import Iterable, Protocol, Union, runtime_checkable

from application.dtos.payments import SyncReport
from domain.payment.entity import Transaction
from domain.payment.events import PaymentEvent, RefundEvent


@runtime_checkable
class AdminNotifier(Protocol):

    async def notify(self, event: Union[PaymentEvent, RefundEvent]) -> None:
        """Deliver one event; raises NotificationError on failure"""
        ...

    async def batch_sync(self, transactions: Iterable[Transaction]) -> SyncReport: ...

    async def aclose(self) -> None: ...
