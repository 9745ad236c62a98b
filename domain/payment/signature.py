"""
Checkout signature verification.

The gateway signs ``order_id|payment_id`` with the merchant key secret
(HMAC-SHA256, hex). Pure functions only: no IO, no state.
"""
from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from typing import Optional, Union

from domain.common.exceptions import SignatureConfigurationException


@dataclass(frozen=True)
class SignatureVerification:
    valid: bool
    reason: str


def _key_bytes(secret: Union[str, bytes, None]) -> bytes:
    if secret is None:
        raise SignatureConfigurationException()
    key = secret.encode("utf-8") if isinstance(secret, str) else bytes(secret)
    if not key:
        raise SignatureConfigurationException()
    return key


def compute_signature(order_id: str, payment_id: str, secret: Union[str, bytes]) -> str:
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(_key_bytes(secret), message, hashlib.sha256).hexdigest()


def verify_signature(
    order_id: str,
    payment_id: str,
    claimed_signature: Optional[str],
    secret: Union[str, bytes, None],
) -> SignatureVerification:
    """Compare the claimed signature with the expected digest.

    Raises SignatureConfigurationException when the secret is missing;
    a mismatch is a normal ``valid=False`` result.
    """
    expected = compute_signature(order_id, payment_id, _key_bytes(secret))
    claimed = (claimed_signature or "").encode("utf-8")
    if hmac.compare_digest(expected.encode("ascii"), claimed):
        return SignatureVerification(valid=True, reason="Payment verified successfully")
    return SignatureVerification(valid=False, reason="Invalid signature")
