"""
Admin portal webhook client.

Pushes ledger facts to the admin system:

- ``POST {url}/api/payments/webhook`` for verified payments
- ``POST {url}/api/refunds/webhook`` for refunds

Amounts are sent in minor units (``amountPaise``). A single call never
retries; missed deliveries are recovered by ``batch_sync``.
"""
from __future__ import annotations

import asyncio
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Optional, Union

import httpx

from application.dtos.payments import SyncReport
from core.logging_config import get_logger
from core.settings import PaymentSettings
from domain.payment.entity import PaymentStatus, Transaction
from domain.payment.events import PaymentEvent, RefundEvent
from infrastructure.external.admin_portal.exceptions import NotificationError


logger = get_logger(__name__)

PAYMENTS_WEBHOOK = "/api/payments/webhook"
REFUNDS_WEBHOOK = "/api/refunds/webhook"


def amount_paise(amount: Decimal) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def payment_payload(event: PaymentEvent) -> dict[str, Any]:
    return {
        "orderId": event.order_id,
        "paymentId": event.payment_id,
        "amountPaise": amount_paise(event.amount),
        "currency": event.currency or "INR",
        "status": event.status,
        "method": event.method,
        "email": event.email,
        "phone": event.phone,
        "description": event.description,
        "metadata": event.metadata,
        "captured": event.captured,
        "capturedAt": (event.paid_at or event.occurred_at).isoformat() if event.captured else None,
    }


def refund_payload(event: RefundEvent) -> dict[str, Any]:
    return {
        "refundId": event.refund_id,
        "paymentId": event.payment_id,
        "amountPaise": amount_paise(event.amount),
        "currency": event.currency or "INR",
        "status": event.status,
        "reason": event.reason,
        "processedAt": event.occurred_at.isoformat(),
    }


def _event_for(tx: Transaction) -> Union[PaymentEvent, RefundEvent]:
    if tx.payment_status == PaymentStatus.REFUNDED and tx.refund_id:
        return RefundEvent.from_transaction(tx)
    return PaymentEvent.from_transaction(tx)


class AdminPortalClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 10.0,
        batch_delay: float = 0.1,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.batch_delay = batch_delay
        self._headers = {
            "Content-Type": "application/json",
            "x-api-key": api_key,
        }
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings: PaymentSettings, **kwargs) -> "AdminPortalClient":
        portal = settings.admin_portal
        return cls(
            portal.url,
            portal.api_key,
            timeout=portal.timeout,
            batch_delay=portal.batch_delay,
            **kwargs,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._headers,
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            try:
                await self._client.aclose()
            finally:
                self._client = None

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            resp = await self.client.post(path, json=payload)
        except httpx.HTTPError as exc:
            logger.warning("admin_portal_unreachable", endpoint=path, error=str(exc))
            raise NotificationError(f"Admin portal unreachable: {exc}", endpoint=path) from exc
        if resp.is_error:
            logger.warning(
                "admin_portal_rejected",
                endpoint=path,
                status_code=resp.status_code,
                body=resp.text[:300],
            )
            raise NotificationError(
                f"Admin portal responded with HTTP {resp.status_code}",
                endpoint=path,
                status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError:
            return {}

    async def notify(self, event: Union[PaymentEvent, RefundEvent]) -> None:
        if isinstance(event, RefundEvent):
            await self._post(REFUNDS_WEBHOOK, refund_payload(event))
            logger.info("admin_portal_refund_synced", refund_id=event.refund_id, payment_id=event.payment_id)
        else:
            await self._post(PAYMENTS_WEBHOOK, payment_payload(event))
            logger.info("admin_portal_payment_synced", order_id=event.order_id, payment_id=event.payment_id)

    async def batch_sync(self, transactions: Iterable[Transaction]) -> SyncReport:
        report = SyncReport()
        for index, tx in enumerate(transactions):
            if index and self.batch_delay > 0:
                await asyncio.sleep(self.batch_delay)
            try:
                await self.notify(_event_for(tx))
            except NotificationError as exc:
                report.failed += 1
                report.errors.append({"transactionId": tx.transaction_id, "error": exc.message})
            else:
                report.success += 1
        logger.info("admin_portal_batch_synced", success=report.success, failed=report.failed)
        return report
