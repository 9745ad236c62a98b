"""Infrastructure models package exports."""
from .base import Base, metadata
from .transaction import PaymentTransactionModel

__all__ = [
    "Base",
    "metadata",
    "PaymentTransactionModel",
]
