"""
Payment domain events.

Dataclass events describe ledger facts forwarded to the admin portal.
Domain remains free of infrastructure imports.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional
import uuid

from .entity import Transaction, PaymentStatus


@dataclass
class LedgerEvent:
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()), kw_only=True)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc), kw_only=True)


@dataclass
class PaymentEvent(LedgerEvent):
    order_id: str
    payment_id: Optional[str]
    amount: Decimal
    currency: str
    status: str
    method: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    description: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    paid_at: Optional[datetime] = None

    @property
    def captured(self) -> bool:
        return self.status == PaymentStatus.SUCCESS.value

    @classmethod
    def from_transaction(cls, tx: Transaction) -> "PaymentEvent":
        return cls(
            order_id=tx.order_id,
            payment_id=tx.payment_id,
            amount=tx.amount,
            currency=tx.currency,
            status=tx.payment_status.value,
            method=tx.payment_method,
            email=tx.user_email,
            phone=tx.user_phone,
            description=tx.metadata.get("description"),
            metadata=dict(tx.metadata),
            paid_at=tx.payment_date,
        )


@dataclass
class RefundEvent(LedgerEvent):
    refund_id: str
    payment_id: str
    amount: Decimal
    currency: str
    status: str
    reason: Optional[str] = None

    @classmethod
    def from_transaction(cls, tx: Transaction) -> "RefundEvent":
        """Refund fact rebuilt from a refunded ledger row"""
        return cls(
            refund_id=tx.refund_id,
            payment_id=tx.payment_id,
            amount=tx.refund_amount if tx.refund_amount is not None else tx.amount,
            currency=tx.currency,
            status="processed",
        )
