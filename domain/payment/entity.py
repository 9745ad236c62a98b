"""
Payment domain entity - the ledger transaction aggregate and its state machine.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional
from enum import Enum

from domain.common.exceptions import DomainValidationException, InvalidTransitionException


DEFAULT_CURRENCY = "INR"
TRANSACTION_ID_PREFIX = "txn_"


class PaymentStatus(str, Enum):
    """Ledger payment status."""
    PENDING = "pending"      # order created, waiting for checkout
    SUCCESS = "success"      # signature verified
    FAILED = "failed"        # signature mismatch
    ERROR = "error"          # verification aborted unexpectedly
    REFUNDED = "refunded"


# Allowed transitions. Every status missing as a key is terminal.
TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.SUCCESS, PaymentStatus.FAILED, PaymentStatus.ERROR}),
    PaymentStatus.SUCCESS: frozenset({PaymentStatus.REFUNDED}),
}


def can_transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def predecessors(target: PaymentStatus) -> frozenset[PaymentStatus]:
    """Statuses a row may hold immediately before moving to ``target``."""
    return frozenset(src for src, targets in TRANSITIONS.items() if target in targets)


def new_transaction_id(prefix: str = TRANSACTION_ID_PREFIX) -> str:
    return f"{prefix}{uuid.uuid4()}"


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class Transaction:
    """
    One ledger row per payment attempt.

    Business rules:
    1. order_id is the only key correlating the row with the gateway
    2. amount must be positive and never changes after creation
    3. status moves only along TRANSITIONS, never back to pending
    4. is_verified is only set by the pending -> success transition
    5. is_refunded is only set by the success -> refunded transition
    """

    transaction_id: str
    order_id: str
    amount: Decimal
    currency: str = DEFAULT_CURRENCY
    payment_status: PaymentStatus = PaymentStatus.PENDING

    user_id: Optional[str] = None
    user_email: Optional[str] = None
    user_phone: Optional[str] = None

    payment_id: Optional[str] = None
    payment_method: Optional[str] = None
    is_verified: bool = False
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None

    error_code: Optional[str] = None
    error_description: Optional[str] = None

    is_refunded: bool = False
    refund_id: Optional[str] = None
    refund_amount: Optional[Decimal] = None

    notes: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    payment_date: Optional[datetime] = None
    verification_date: Optional[datetime] = None
    refund_date: Optional[datetime] = None

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            self.amount = Decimal(str(self.amount))
        if self.amount <= 0:
            raise DomainValidationException(f"Amount must be greater than 0: {self.amount}", field="amount")
        self.currency = (self.currency or DEFAULT_CURRENCY).upper()
        if len(self.currency) != 3 or not self.currency.isalpha():
            raise DomainValidationException(f"Invalid currency code: {self.currency}", field="currency")
        self.payment_status = PaymentStatus(self.payment_status)
        if self.notes is None:
            self.notes = {}
        if self.metadata is None:
            self.metadata = {}
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)
        self.payment_date = _ensure_utc(self.payment_date)
        self.verification_date = _ensure_utc(self.verification_date)
        self.refund_date = _ensure_utc(self.refund_date)

    @classmethod
    def open(
        cls,
        *,
        order_id: str,
        amount: Decimal,
        currency: Optional[str] = None,
        user_id: Optional[str] = None,
        user_email: Optional[str] = None,
        user_phone: Optional[str] = None,
        notes: Optional[dict] = None,
        metadata: Optional[dict] = None,
        prefix: str = TRANSACTION_ID_PREFIX,
    ) -> "Transaction":
        """Build a fresh pending row for a gateway order."""
        if not order_id:
            raise DomainValidationException("order_id is required", field="order_id")
        now = datetime.now(timezone.utc)
        return cls(
            transaction_id=new_transaction_id(prefix),
            order_id=order_id,
            amount=amount,
            currency=currency or DEFAULT_CURRENCY,
            user_id=user_id,
            user_email=user_email,
            user_phone=user_phone,
            notes=notes or {},
            metadata=metadata or {},
            created_at=now,
            updated_at=now,
        )

    def ensure_can_transition(self, target: PaymentStatus) -> None:
        if not can_transition(self.payment_status, target):
            raise InvalidTransitionException(
                self.payment_status.value, PaymentStatus(target).value, order_id=self.order_id
            )

    def is_replay_of(self, payment_id: str) -> bool:
        """True when this row was already verified for the same gateway payment."""
        return self.payment_status == PaymentStatus.SUCCESS and self.payment_id == payment_id
