"""
Payment transaction table mapping.
This is a persistence detail; lifecycle rules live in domain.payment.entity.
"""
from sqlalchemy import Boolean, Column, DateTime, Index, Integer, Numeric, String, Text
from datetime import datetime, timezone

from .base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentTransactionModel(Base):
    __tablename__ = "payment_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)

    transaction_id = Column(String(64), unique=True, nullable=False, index=True, comment="Local transaction id")
    order_id = Column(String(100), unique=True, nullable=False, index=True, comment="Gateway order id")
    payment_id = Column(String(100), nullable=True, index=True, comment="Gateway payment id")

    user_id = Column(String(100), nullable=True, index=True)
    user_email = Column(String(255), nullable=True)
    user_phone = Column(String(32), nullable=True)

    amount = Column(Numeric(precision=12, scale=2), nullable=False, comment="Major units")
    currency = Column(String(3), nullable=False, default="INR")

    payment_status = Column(String(20), nullable=False, default="pending", index=True)
    payment_method = Column(String(50), nullable=True)
    is_verified = Column(Boolean, nullable=False, default=False)

    # verification audit trail
    razorpay_order_id = Column(String(100), nullable=True)
    razorpay_payment_id = Column(String(100), nullable=True, index=True)
    razorpay_signature = Column(String(256), nullable=True)

    error_code = Column(String(100), nullable=True)
    error_description = Column(Text, nullable=True)

    is_refunded = Column(Boolean, nullable=False, default=False)
    refund_id = Column(String(100), nullable=True)
    refund_amount = Column(Numeric(precision=12, scale=2), nullable=True)

    # serialized JSON; extra_metadata avoids clashing with Base.metadata
    notes = Column(Text, nullable=True)
    extra_metadata = Column("metadata", Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
    payment_date = Column(DateTime(timezone=True), nullable=True)
    verification_date = Column(DateTime(timezone=True), nullable=True)
    refund_date = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_payment_transactions_status_created", "payment_status", "created_at"),
        Index("ix_payment_transactions_user_created", "user_id", "created_at"),
    )

    def __repr__(self):
        return (
            f"<PaymentTransactionModel(id={self.id}, order_id='{self.order_id}', "
            f"amount={self.amount}, status='{self.payment_status}')>"
        )
