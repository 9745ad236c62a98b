"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
Amounts cross this boundary in major units; adapters convert to the
gateway's minor-unit convention.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional, Protocol, runtime_checkable

from application.dtos.payments import GatewayOrder, GatewayPayment, GatewayRefund


@runtime_checkable
class PaymentGateway(Protocol):
    """Gateway protocol for the upstream payment provider.

    Failures surface as GatewayAuthError, GatewayNotFoundError,
    GatewayValidationError or the catch-all GatewayError.
    """

    provider: str

    async def create_order(
        self, amount: Decimal, currency: str, notes: Optional[dict[str, Any]] = None
    ) -> GatewayOrder: ...

    async def fetch_order(self, order_id: str) -> GatewayOrder: ...

    async def fetch_payment(self, payment_id: str) -> GatewayPayment: ...

    async def create_refund(self, payment_id: str, amount: Optional[Decimal] = None) -> GatewayRefund: ...

    async def capture_payment(self, payment_id: str, amount: Decimal, currency: str) -> GatewayPayment: ...

    async def aclose(self) -> None: ...
