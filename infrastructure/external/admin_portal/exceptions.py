"""Admin portal sync failures. Logged by callers, never rendered to API clients."""
from __future__ import annotations

from typing import Optional
from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


class NotificationError(BusinessException):
    def __init__(self, message: str, *, endpoint: str, status_code: Optional[int] = None):
        self.endpoint = endpoint
        self.status_code = status_code
        super().__init__(
            code=PaymentCode.NOTIFICATION_ERROR,
            message=message,
            error_type="NotificationError",
            details={"endpoint": endpoint, "status_code": status_code},
        )
