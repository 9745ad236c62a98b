from decimal import Decimal

import pytest
import razorpay
import requests
from razorpay import errors as rzp_errors

from infrastructure.external.payments import get_payment_gateway
from infrastructure.external.payments.exceptions import (
    GatewayAuthError,
    GatewayError,
    GatewayNotFoundError,
    GatewayValidationError,
)
from infrastructure.external.payments.razorpay_client import RazorpayClient, to_major, to_minor


class _Resource:
    """Stand-in for an SDK resource; records calls and replays scripted outcomes."""

    def __init__(self, calls, outcomes):
        self._calls = calls
        self._outcomes = outcomes

    def __getattr__(self, name):
        def method(*args, **kwargs):
            self._calls.append((name, args, kwargs))
            outcome = self._outcomes[name].pop(0) if isinstance(self._outcomes[name], list) else self._outcomes[name]
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome

        return method


class FakeSDK:
    def __init__(self, order=None, payment=None):
        self.calls = []
        self.order = _Resource(self.calls, order or {})
        self.payment = _Resource(self.calls, payment or {})


def _client(sdk, **kwargs):
    return RazorpayClient(
        "rzp_test_key",
        "rzp_test_secret",
        retry={"max": 1, "base": 0},
        timeouts={"connect": 1.0, "read": 2.0, "write": 2.0, "total": 3.0},
        sdk=sdk,
        **kwargs,
    )


_ORDER = {"id": "order_abc", "amount": 100, "currency": "INR", "status": "paid"}


def test_minor_unit_conversion():
    assert to_minor(Decimal("500")) == 50000
    assert to_minor(Decimal("10.005")) == 1001
    assert to_major(50050) == Decimal("500.50")
    assert to_major(None) is None


def test_missing_credentials_raise():
    with pytest.raises(RuntimeError):
        RazorpayClient("", "secret")


def test_unknown_provider_is_rejected():
    with pytest.raises(ValueError):
        get_payment_gateway("paypal")


def test_default_sdk_is_authenticated_razorpay_client():
    client = RazorpayClient("rzp_test_key", "rzp_test_secret")
    assert isinstance(client._sdk, razorpay.Client)
    assert client._sdk.auth == ("rzp_test_key", "rzp_test_secret")


@pytest.mark.asyncio
async def test_create_order_sends_minor_units_and_timeout():
    sdk = FakeSDK(
        order={
            "create": {
                "id": "order_abc",
                "amount": 50000,
                "amount_paid": 0,
                "amount_due": 50000,
                "currency": "INR",
                "status": "created",
                "receipt": "receipt_1",
                "notes": [],
                "attempts": 0,
            }
        }
    )
    client = _client(sdk)
    order = await client.create_order(Decimal("500"), "inr", {"sku": "A1"})
    await client.aclose()

    name, args, kwargs = sdk.calls[0]
    assert name == "create"
    assert args == ()
    assert kwargs["timeout"] == (1.0, 2.0)
    assert kwargs["data"]["amount"] == 50000
    assert kwargs["data"]["currency"] == "INR"
    assert kwargs["data"]["receipt"].startswith("receipt_")
    assert kwargs["data"]["notes"] == {"sku": "A1"}
    assert order.id == "order_abc"
    assert order.amount == Decimal("500.00")
    assert order.notes == {}


@pytest.mark.asyncio
async def test_full_refund_sends_empty_body():
    refund = {"id": "rfnd_1", "payment_id": "pay_1", "amount": 50000, "currency": "INR", "status": "processed"}
    sdk = FakeSDK(payment={"refund": refund})
    client = _client(sdk)

    full = await client.create_refund("pay_1")
    await client.create_refund("pay_1", Decimal("120.50"))

    assert [(c[1], c[2]["data"]) for c in sdk.calls] == [(("pay_1",), {}), (("pay_1",), {"amount": 12050})]
    assert full.amount == Decimal("500.00")
    assert full.payment_id == "pay_1"


@pytest.mark.asyncio
async def test_fetch_payment_maps_fields():
    sdk = FakeSDK(
        payment={
            "fetch": {
                "id": "pay_1",
                "amount": 50000,
                "currency": "INR",
                "status": "captured",
                "order_id": "order_abc",
                "method": "upi",
                "captured": True,
                "email": "a@b.co",
            }
        }
    )
    payment = await _client(sdk).fetch_payment("pay_1")
    assert sdk.calls[0][:2] == ("fetch", ("pay_1",))
    assert payment.method == "upi"
    assert payment.captured is True
    assert payment.amount == Decimal("500.00")


@pytest.mark.asyncio
async def test_capture_payment_passes_amount_and_currency():
    sdk = FakeSDK(
        payment={"capture": {"id": "pay_1", "amount": 25000, "currency": "INR", "status": "captured", "captured": True}}
    )
    payment = await _client(sdk).capture_payment("pay_1", Decimal("250"), "inr")

    name, args, kwargs = sdk.calls[0]
    assert (name, args, kwargs["data"]) == ("capture", ("pay_1", 25000), {"currency": "INR"})
    assert payment.captured is True


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error, expected, provider_code",
    [
        (rzp_errors.BadRequestError("Authentication failed"), GatewayAuthError, "BAD_REQUEST_ERROR"),
        (rzp_errors.BadRequestError("The id provided does not exist"), GatewayNotFoundError, "BAD_REQUEST_ERROR"),
        (rzp_errors.BadRequestError("The amount must be atleast INR 1.00"), GatewayValidationError, "BAD_REQUEST_ERROR"),
        (rzp_errors.GatewayError("Bank declined"), GatewayError, "GATEWAY_ERROR"),
        (rzp_errors.ServerError("Internal error"), GatewayError, "SERVER_ERROR"),
    ],
)
async def test_sdk_errors_are_mapped(error, expected, provider_code):
    sdk = FakeSDK(order={"fetch": error})

    with pytest.raises(expected) as exc:
        await _client(sdk).fetch_order("order_missing")
    assert type(exc.value) is expected
    assert exc.value.message == str(error)
    assert exc.value.provider_code == provider_code
    assert exc.value.provider == "razorpay"


@pytest.mark.asyncio
async def test_non_json_body_is_a_gateway_error():
    sdk = FakeSDK(order={"fetch": ValueError("Expecting value: line 1 column 1 (char 0)")})

    with pytest.raises(GatewayError) as exc:
        await _client(sdk).fetch_order("order_abc")
    assert "non-JSON" in exc.value.message


@pytest.mark.asyncio
async def test_reads_retry_transport_failures():
    sdk = FakeSDK(order={"fetch": [requests.exceptions.ConnectionError("reset"), _ORDER]})

    order = await _client(sdk).fetch_order("order_abc")
    assert order.status == "paid"
    assert len(sdk.calls) == 2


@pytest.mark.asyncio
async def test_writes_are_not_retried_after_a_read_timeout():
    sdk = FakeSDK(payment={"refund": [requests.exceptions.ReadTimeout("slow")]})

    with pytest.raises(GatewayError) as exc:
        await _client(sdk).create_refund("pay_1")
    assert "timed out" in exc.value.message
    assert len(sdk.calls) == 1


@pytest.mark.asyncio
async def test_writes_retry_connect_timeouts():
    refund = {"id": "rfnd_1", "payment_id": "pay_1", "amount": 100, "currency": "INR", "status": "processed"}
    sdk = FakeSDK(payment={"refund": [requests.exceptions.ConnectTimeout("no route"), refund]})

    result = await _client(sdk).create_refund("pay_1")
    assert result.id == "rfnd_1"
    assert len(sdk.calls) == 2
