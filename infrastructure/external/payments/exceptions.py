"""
Gateway failures mapped to unified BusinessException variants.
"""
from __future__ import annotations

from typing import Optional
from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


class GatewayError(BusinessException):
    """Catch-all upstream failure (network, timeout, 5xx, unexpected body)"""

    code_value = PaymentCode.GATEWAY_ERROR
    type_name = "GatewayError"

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        provider_code: str | None = None,
        status_code: int | None = None,
        details: Optional[dict] = None,
    ):
        full_details = {"provider": provider, "provider_code": provider_code, "status_code": status_code}
        if details:
            full_details.update(details)
        self.provider = provider
        self.provider_code = provider_code
        self.status_code = status_code
        super().__init__(
            code=self.code_value,
            message=message,
            error_type=self.type_name,
            details=full_details,
        )


class GatewayAuthError(GatewayError):
    code_value = PaymentCode.GATEWAY_AUTH
    type_name = "GatewayAuthError"


class GatewayNotFoundError(GatewayError):
    code_value = PaymentCode.GATEWAY_NOT_FOUND
    type_name = "GatewayNotFound"


class GatewayValidationError(GatewayError):
    code_value = PaymentCode.GATEWAY_VALIDATION
    type_name = "GatewayValidationError"
