"""
Payment DTOs (Pydantic v2) used at application boundaries.

Request bodies keep the field names the checkout frontend already sends
(camelCase for order/refund calls, razorpay_* for verification).
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.types import condecimal

from domain.payment.entity import Transaction


def _upper_currency(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    u = v.strip().upper()
    if len(u) != 3 or not u.isalpha():
        raise ValueError("currency must be ISO-4217 alpha-3")
    return u


# ---- requests ----

class CreateOrderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    amount: condecimal(gt=0, max_digits=12, decimal_places=2)  # type: ignore[valid-type]
    currency: str = Field(default="INR")
    metadata: Optional[dict[str, Any]] = None
    user_id: Optional[str] = Field(default=None, alias="userId")
    user_email: Optional[str] = Field(default=None, alias="userEmail")
    user_phone: Optional[str] = Field(default=None, alias="userPhone")

    @field_validator("currency")
    @classmethod
    def _validate_currency(cls, v: str) -> str:
        return _upper_currency(v)

    @field_validator("user_id", mode="before")
    @classmethod
    def _stringify_user_id(cls, v):
        # frontends send numeric ids as well
        return str(v) if isinstance(v, int) else v


class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: str = Field(min_length=1)
    razorpay_payment_id: str = Field(min_length=1)
    razorpay_signature: str = Field(min_length=1)
    payment_method: Optional[str] = None


class RefundRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    payment_id: str = Field(alias="paymentId", min_length=1)
    amount: Optional[condecimal(gt=0, max_digits=12, decimal_places=2)] = None  # type: ignore[valid-type]


class CaptureRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    payment_id: str = Field(alias="paymentId", min_length=1)
    amount: condecimal(gt=0, max_digits=12, decimal_places=2)  # type: ignore[valid-type]
    currency: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def _validate_currency(cls, v: Optional[str]) -> Optional[str]:
        return _upper_currency(v)


# ---- gateway shapes (amounts in major units) ----

class GatewayOrder(BaseModel):
    id: str
    amount: Decimal
    currency: str
    status: str
    receipt: Optional[str] = None
    notes: dict[str, Any] = Field(default_factory=dict)
    amount_paid: Optional[Decimal] = None
    amount_due: Optional[Decimal] = None
    attempts: Optional[int] = None
    created_at: Optional[int] = None


class GatewayPayment(BaseModel):
    id: str
    amount: Decimal
    currency: str
    status: str
    order_id: Optional[str] = None
    method: Optional[str] = None
    captured: bool = False
    email: Optional[str] = None
    contact: Optional[str] = None
    amount_refunded: Optional[Decimal] = None
    error_code: Optional[str] = None
    error_description: Optional[str] = None
    notes: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[int] = None


class GatewayRefund(BaseModel):
    id: str
    payment_id: str
    amount: Decimal
    currency: str
    status: Optional[str] = None
    notes: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[int] = None


# ---- results ----

class TransactionDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    transaction_id: str
    order_id: str
    payment_id: Optional[str] = None
    user_id: Optional[str] = None
    user_email: Optional[str] = None
    user_phone: Optional[str] = None
    amount: Decimal
    currency: str
    payment_status: str
    payment_method: Optional[str] = None
    is_verified: bool
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    error_code: Optional[str] = None
    error_description: Optional[str] = None
    is_refunded: bool
    refund_id: Optional[str] = None
    refund_amount: Optional[Decimal] = None
    notes: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    payment_date: Optional[datetime] = None
    verification_date: Optional[datetime] = None
    refund_date: Optional[datetime] = None

    @classmethod
    def from_entity(cls, tx: Optional[Transaction]) -> Optional["TransactionDTO"]:
        if tx is None:
            return None
        return cls(
            id=tx.id,
            transaction_id=tx.transaction_id,
            order_id=tx.order_id,
            payment_id=tx.payment_id,
            user_id=tx.user_id,
            user_email=tx.user_email,
            user_phone=tx.user_phone,
            amount=tx.amount,
            currency=tx.currency,
            payment_status=tx.payment_status.value,
            payment_method=tx.payment_method,
            is_verified=tx.is_verified,
            razorpay_order_id=tx.razorpay_order_id,
            razorpay_payment_id=tx.razorpay_payment_id,
            error_code=tx.error_code,
            error_description=tx.error_description,
            is_refunded=tx.is_refunded,
            refund_id=tx.refund_id,
            refund_amount=tx.refund_amount,
            notes=tx.notes,
            metadata=tx.metadata,
            created_at=tx.created_at,
            updated_at=tx.updated_at,
            payment_date=tx.payment_date,
            verification_date=tx.verification_date,
            refund_date=tx.refund_date,
        )


class CreateOrderResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order: GatewayOrder
    # None when the gateway order exists but the ledger insert failed
    transaction_id: Optional[str] = Field(default=None, alias="transactionId")


class VerifyPaymentResult(BaseModel):
    success: bool
    message: str
    error: Optional[str] = None
    transaction: Optional[TransactionDTO] = None


class OrderStatusResult(BaseModel):
    order: GatewayOrder
    transaction: Optional[TransactionDTO] = None


Reconciliation = Literal["updated", "absent", "failed"]


class RefundResult(BaseModel):
    success: bool
    refund: GatewayRefund
    transaction: Optional[TransactionDTO] = None
    # outcome of the local ledger update; the gateway refund already happened
    reconciliation: Reconciliation = "updated"


class CaptureResult(BaseModel):
    success: bool
    payment: GatewayPayment


class TransactionStatsDTO(BaseModel):
    total_transactions: int
    successful_payments: int
    failed_payments: int
    pending_payments: int
    error_payments: int
    refunded_payments: int
    total_revenue: Decimal
    average_transaction_value: Optional[Decimal] = None


class TransactionListResult(BaseModel):
    transactions: list[TransactionDTO]
    count: int
    limit: int
    offset: int


class CleanupResult(BaseModel):
    deleted: int
    older_than: datetime


class SyncReport(BaseModel):
    success: int = 0
    failed: int = 0
    errors: list[dict[str, Any]] = Field(default_factory=list)
