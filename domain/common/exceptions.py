"""Domain-level business exceptions shared by domain and infrastructure.

The core layer only maps these to HTTP responses; the domain never imports
core to avoid a reverse dependency.
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """Base class for business errors."""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="ValidationError",
            details=details,
            field=field,
        )


class TransactionNotFoundException(BusinessException):
    def __init__(
        self,
        *,
        order_id: Optional[str] = None,
        payment_id: Optional[str] = None,
        transaction_id: Optional[str] = None,
    ):
        details = {}
        if order_id is not None:
            details["order_id"] = order_id
        if payment_id is not None:
            details["payment_id"] = payment_id
        if transaction_id is not None:
            details["transaction_id"] = transaction_id
        super().__init__(
            code=BusinessCode.TRANSACTION_NOT_FOUND,
            message="Transaction not found",
            error_type="NotFound",
            details=details or None,
        )


class InvalidTransitionException(BusinessException):
    def __init__(self, current: str, target: str, *, order_id: Optional[str] = None):
        details = {"current_status": current, "target_status": target}
        if order_id is not None:
            details["order_id"] = order_id
        super().__init__(
            code=BusinessCode.INVALID_TRANSITION,
            message=f"Cannot move transaction from {current} to {target}",
            error_type="InvalidTransition",
            details=details,
            field="payment_status",
        )


class PersistenceException(BusinessException):
    def __init__(self, message: str, *, operation: str, details: Optional[dict] = None):
        full_details = {"operation": operation}
        if details:
            full_details.update(details)
        super().__init__(
            code=BusinessCode.DATABASE_ERROR,
            message=message,
            error_type="PersistenceError",
            details=full_details,
        )


class SignatureConfigurationException(BusinessException):
    def __init__(self, message: str = "Payment signature secret is not configured"):
        super().__init__(
            code=BusinessCode.CONFIGURATION_ERROR,
            message=message,
            error_type="ConfigurationError",
        )
