"""
Payment specific codes and gateway status mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Gateway errors (6xxxx)
    GATEWAY_ERROR = 60000
    GATEWAY_AUTH = 60001
    GATEWAY_NOT_FOUND = 60002
    GATEWAY_VALIDATION = 60003

    # Outbound sync (7xxxx)
    NOTIFICATION_ERROR = 70000


# Error code stamped on the ledger row when the checkout signature does not match
SIGNATURE_VERIFICATION_FAILED = "SIGNATURE_VERIFICATION_FAILED"
# Error code stamped by the compensating transition after an unexpected failure
VERIFICATION_ERROR = "VERIFICATION_ERROR"


# Razorpay payment.status -> ledger payment_status (informational only;
# the ledger only trusts the checkout signature)
GATEWAY_PAYMENT_STATUS_TO_INTERNAL = {
    "created": "pending",
    "authorized": "pending",
    "captured": "success",
    "refunded": "refunded",
    "failed": "failed",
}
