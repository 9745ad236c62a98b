import hashlib
import hmac

import pytest

from domain.common.exceptions import SignatureConfigurationException
from domain.payment.signature import compute_signature, verify_signature


def test_signature_matches_hmac_sha256_of_order_and_payment():
    expected = hmac.new(b"secret", b"order_abc|pay_xyz", hashlib.sha256).hexdigest()
    assert compute_signature("order_abc", "pay_xyz", "secret") == expected


def test_valid_signature_is_accepted():
    sig = compute_signature("order_abc", "pay_xyz", "secret")
    result = verify_signature("order_abc", "pay_xyz", sig, "secret")
    assert result.valid is True
    assert result.reason == "Payment verified successfully"


def test_mismatch_is_a_result_not_an_error():
    result = verify_signature("order_abc", "pay_xyz", "deadbeef", "secret")
    assert result.valid is False
    assert result.reason == "Invalid signature"


def test_swapped_ids_do_not_verify():
    sig = compute_signature("order_abc", "pay_xyz", "secret")
    assert not verify_signature("pay_xyz", "order_abc", sig, "secret").valid


def test_comparison_is_case_sensitive():
    sig = compute_signature("order_abc", "pay_xyz", "secret").upper()
    assert not verify_signature("order_abc", "pay_xyz", sig, "secret").valid


def test_empty_claimed_signature_is_rejected():
    assert not verify_signature("order_abc", "pay_xyz", None, "secret").valid
    assert not verify_signature("order_abc", "pay_xyz", "", "secret").valid


@pytest.mark.parametrize("secret", [None, ""])
def test_missing_secret_raises(secret):
    with pytest.raises(SignatureConfigurationException):
        verify_signature("order_abc", "pay_xyz", "deadbeef", secret)


def test_verification_is_deterministic():
    sig = compute_signature("order_abc", "pay_xyz", "secret")
    results = {verify_signature("order_abc", "pay_xyz", sig, "secret").valid for _ in range(5)}
    assert results == {True}


@pytest.mark.parametrize("position", range(64))
def test_any_single_character_change_is_rejected(position):
    sig = compute_signature("order_abc", "pay_xyz", "secret")
    replacement = "1" if sig[position] == "0" else "0"
    tampered = sig[:position] + replacement + sig[position + 1:]

    result = verify_signature("order_abc", "pay_xyz", tampered, "secret")
    assert result.valid is False
    assert result.reason == "Invalid signature"
