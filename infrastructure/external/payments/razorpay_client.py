"""
Razorpay Orders/Payments/Refunds adapter using the official razorpay SDK.

Notes on the SDK (razorpay-python):
- ``razorpay.Client(auth=(key_id, key_secret))``; every resource call is a
  blocking ``requests`` round trip and accepts ``timeout=`` passthrough.
- Amounts are integers in the currency's minor unit (paise for INR).
- Error bodies surface as ``BadRequestError`` / ``GatewayError`` /
  ``ServerError`` carrying only the description. Authentication failures
  and unknown ids both arrive as ``BadRequestError``, so the description
  decides the category.
"""
from __future__ import annotations

import time
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

import razorpay
from razorpay import errors as rzp_errors

from application.dtos.payments import GatewayOrder, GatewayPayment, GatewayRefund
from core.settings import PaymentSettings
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import (
    GatewayAuthError,
    GatewayError,
    GatewayNotFoundError,
    GatewayValidationError,
)


_MINOR_PER_MAJOR = Decimal(100)


def to_minor(amount: Decimal) -> int:
    return int((Decimal(str(amount)) * _MINOR_PER_MAJOR).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def to_major(amount_minor: Optional[int]) -> Optional[Decimal]:
    if amount_minor is None:
        return None
    return (Decimal(int(amount_minor)) / _MINOR_PER_MAJOR).quantize(Decimal("0.01"))


def _notes(raw: Any) -> dict[str, Any]:
    # Razorpay serializes empty notes as []
    return raw if isinstance(raw, dict) else {}


class RazorpayClient(BasePaymentClient):
    provider = "razorpay"
    sdk_errors = (rzp_errors.BadRequestError, rzp_errors.GatewayError, rzp_errors.ServerError)

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        *,
        base_url: Optional[str] = None,
        timeouts: Optional[dict[str, float]] = None,
        retry: Optional[dict[str, Any]] = None,
        sdk: Optional[Any] = None,
    ) -> None:
        if not key_id or not key_secret:
            raise RuntimeError("RAZORPAY__KEY_ID / RAZORPAY__KEY_SECRET not configured")
        super().__init__(timeouts=timeouts, retry=retry)
        if sdk is None:
            options = {"base_url": base_url} if base_url else {}
            sdk = razorpay.Client(auth=(key_id, key_secret), **options)
        self._sdk = sdk

    @classmethod
    def from_settings(cls, settings: PaymentSettings, **kwargs) -> "RazorpayClient":
        return cls(
            settings.razorpay.key_id or "",
            settings.razorpay.key_secret or "",
            base_url=settings.razorpay.base_url,
            timeouts=settings.timeouts.model_dump(),
            retry={"max": settings.retry.max, "base": settings.retry.base_backoff},
            **kwargs,
        )

    async def aclose(self) -> None:
        session = getattr(self._sdk, "session", None)
        if session is not None:
            session.close()

    def _map_error(self, exc: BaseException) -> GatewayError:
        description = str(exc) or "Razorpay request failed"
        lowered = description.lower()
        if isinstance(exc, rzp_errors.BadRequestError):
            if "authentication failed" in lowered:
                return GatewayAuthError(description, provider=self.provider, provider_code="BAD_REQUEST_ERROR")
            if "does not exist" in lowered or "not found" in lowered:
                return GatewayNotFoundError(description, provider=self.provider, provider_code="BAD_REQUEST_ERROR")
            return GatewayValidationError(description, provider=self.provider, provider_code="BAD_REQUEST_ERROR")
        code = "GATEWAY_ERROR" if isinstance(exc, rzp_errors.GatewayError) else "SERVER_ERROR"
        return GatewayError(description, provider=self.provider, provider_code=code)

    @staticmethod
    def _order(body: dict[str, Any]) -> GatewayOrder:
        return GatewayOrder(
            id=body["id"],
            amount=to_major(body["amount"]),
            currency=body["currency"],
            status=body.get("status", "created"),
            receipt=body.get("receipt"),
            notes=_notes(body.get("notes")),
            amount_paid=to_major(body.get("amount_paid")),
            amount_due=to_major(body.get("amount_due")),
            attempts=body.get("attempts"),
            created_at=body.get("created_at"),
        )

    @staticmethod
    def _payment(body: dict[str, Any]) -> GatewayPayment:
        return GatewayPayment(
            id=body["id"],
            amount=to_major(body["amount"]),
            currency=body["currency"],
            status=body["status"],
            order_id=body.get("order_id"),
            method=body.get("method"),
            captured=bool(body.get("captured", False)),
            email=body.get("email"),
            contact=body.get("contact"),
            amount_refunded=to_major(body.get("amount_refunded")),
            error_code=body.get("error_code"),
            error_description=body.get("error_description"),
            notes=_notes(body.get("notes")),
            created_at=body.get("created_at"),
        )

    @staticmethod
    def _refund(body: dict[str, Any]) -> GatewayRefund:
        return GatewayRefund(
            id=body["id"],
            payment_id=body["payment_id"],
            amount=to_major(body["amount"]),
            currency=body["currency"],
            status=body.get("status"),
            notes=_notes(body.get("notes")),
            created_at=body.get("created_at"),
        )

    async def create_order(
        self, amount: Decimal, currency: str, notes: Optional[dict[str, Any]] = None
    ) -> GatewayOrder:
        payload = {
            "amount": to_minor(amount),
            "currency": currency.upper(),
            "receipt": f"receipt_{int(time.time() * 1000)}",
            "notes": notes or {},
        }
        body = await self._call(self._sdk.order.create, data=payload, operation="create_order", idempotent=False)
        order = self._order(body)
        self._log("order_created", order_id=order.id, amount_minor=payload["amount"], currency=order.currency)
        return order

    async def fetch_order(self, order_id: str) -> GatewayOrder:
        body = await self._call(self._sdk.order.fetch, order_id, operation="fetch_order", idempotent=True)
        return self._order(body)

    async def fetch_payment(self, payment_id: str) -> GatewayPayment:
        body = await self._call(self._sdk.payment.fetch, payment_id, operation="fetch_payment", idempotent=True)
        payment = self._payment(body)
        self._log(
            "payment_fetched",
            payment_id=payment.id,
            gateway_status=payment.status,
            ledger_status=self._map_status(payment.status),
        )
        return payment

    async def create_refund(self, payment_id: str, amount: Optional[Decimal] = None) -> GatewayRefund:
        # no amount means a full refund
        payload: dict[str, Any] = {}
        if amount is not None:
            payload["amount"] = to_minor(amount)
        body = await self._call(
            self._sdk.payment.refund, payment_id, data=payload, operation="create_refund", idempotent=False
        )
        refund = self._refund(body)
        self._log("refund_created", payment_id=payment_id, refund_id=refund.id, amount=str(refund.amount))
        return refund

    async def capture_payment(self, payment_id: str, amount: Decimal, currency: str) -> GatewayPayment:
        body = await self._call(
            self._sdk.payment.capture,
            payment_id,
            to_minor(amount),
            data={"currency": currency.upper()},
            operation="capture_payment",
            idempotent=False,
        )
        return self._payment(body)
