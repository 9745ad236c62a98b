from decimal import Decimal

import httpx
import pytest
import pytest_asyncio

from api.middleware.logging import LoggingMiddleware
from main import app


@pytest_asyncio.fixture
async def client(database, gateway, notifier, background):
    app.state.database = database
    app.state.gateway = gateway
    app.state.notifier = notifier
    app.state.background = background
    app.state.signature_secret = "rzp_test_secret"
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    await background.drain()


async def _create(client, amount=500):
    resp = await client.post("/api/payment/create-order", json={"amount": amount, "currency": "INR", "userId": 42})
    assert resp.status_code == 200
    return resp.json()


async def _verify(client, order_id, payment_id, signature):
    return await client.post(
        "/api/payment/verify-payment",
        json={
            "razorpay_order_id": order_id,
            "razorpay_payment_id": payment_id,
            "razorpay_signature": signature,
        },
    )


@pytest.mark.asyncio
async def test_create_order(client):
    body = await _create(client)
    assert body["order"]["id"] == "order_1"
    assert Decimal(str(body["order"]["amount"])) == Decimal("500")
    assert body["transactionId"].startswith("txn_")


@pytest.mark.asyncio
async def test_missing_amount_is_a_validation_error(client):
    resp = await client.post("/api/payment/create-order", json={"currency": "INR"})

    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["code"] == 10003
    assert body["type"] == "ValidationError"
    assert body["field"] == "amount"
    assert body["request_id"] == resp.headers["X-Request-ID"]
    assert body["timestamp"].endswith("Z")


@pytest.mark.asyncio
async def test_negative_amount_is_rejected(client, gateway):
    resp = await client.post("/api/payment/create-order", json={"amount": -5})
    assert resp.status_code == 400
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_verify_success(client, signer):
    order_id = (await _create(client))["order"]["id"]

    resp = await _verify(client, order_id, "pay_1", signer(order_id, "pay_1"))

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["transaction"]["payment_status"] == "success"
    assert body["transaction"]["is_verified"] is True


@pytest.mark.asyncio
async def test_verify_bad_signature_returns_400(client):
    order_id = (await _create(client))["order"]["id"]

    resp = await _verify(client, order_id, "pay_1", "deadbeef")

    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "Invalid signature"
    assert body["transaction"]["payment_status"] == "failed"


@pytest.mark.asyncio
async def test_verify_unknown_order_returns_404(client, signer):
    resp = await _verify(client, "order_missing", "pay_1", signer("order_missing", "pay_1"))
    assert resp.status_code == 404
    assert resp.json()["code"] == 20101


@pytest.mark.asyncio
async def test_verify_without_secret_returns_500(client):
    app.state.signature_secret = None
    resp = await _verify(client, "order_1", "pay_1", "deadbeef")
    assert resp.status_code == 500
    assert resp.json()["type"] == "ConfigurationError"


@pytest.mark.asyncio
async def test_refund_then_second_refund_conflicts(client, signer):
    order_id = (await _create(client))["order"]["id"]
    await _verify(client, order_id, "pay_1", signer(order_id, "pay_1"))

    first = await client.post("/api/payment/refund", json={"paymentId": "pay_1"})
    second = await client.post("/api/payment/refund", json={"paymentId": "pay_1"})

    assert first.status_code == 200
    assert first.json()["reconciliation"] == "updated"
    assert first.json()["transaction"]["payment_status"] == "refunded"
    assert second.status_code == 409
    assert second.json()["type"] == "InvalidTransition"


@pytest.mark.asyncio
async def test_order_status(client):
    order_id = (await _create(client))["order"]["id"]
    resp = await client.get(f"/api/payment/order-status/{order_id}")
    assert resp.status_code == 200
    assert resp.json()["transaction"]["order_id"] == order_id


@pytest.mark.asyncio
async def test_gateway_not_configured_returns_503(client):
    app.state.gateway = None
    resp = await client.post("/api/payment/create-order", json={"amount": 10})
    assert resp.status_code == 503


@pytest.mark.asyncio
async def test_transaction_lookup_and_listing(client, signer):
    created = await _create(client)
    order_id = created["order"]["id"]
    await _verify(client, order_id, "pay_1", signer(order_id, "pay_1"))
    await _create(client)

    one = await client.get(f"/api/payment/transaction/{created['transactionId']}")
    listed = await client.get("/api/payment/transactions", params={"status": "success", "limit": 10})
    by_user = await client.get("/api/payment/user-transactions/42")

    assert one.status_code == 200 and one.json()["order_id"] == order_id
    assert listed.json()["count"] == 1
    assert by_user.json()["count"] == 2


@pytest.mark.asyncio
async def test_unknown_transaction_returns_404(client):
    resp = await client.get("/api/payment/transaction/txn_missing")
    assert resp.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize("params", [{"status": "bogus"}, {"limit": 0}, {"offset": -1}])
async def test_invalid_listing_parameters(client, params):
    resp = await client.get("/api/payment/transactions", params=params)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_stats(client, signer):
    order_id = (await _create(client, 250))["order"]["id"]
    await _verify(client, order_id, "pay_1", signer(order_id, "pay_1"))

    resp = await client.get("/api/payment/stats")

    assert resp.status_code == 200
    body = resp.json()
    assert body["total_transactions"] == 1
    assert Decimal(str(body["total_revenue"])) == Decimal("250.00")


@pytest.mark.asyncio
async def test_stats_rejects_inverted_window(client):
    resp = await client.get(
        "/api/payment/stats",
        params={"startDate": "2026-02-01T00:00:00Z", "endDate": "2026-01-01T00:00:00Z"},
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["database"] == "up"


@pytest.mark.asyncio
async def test_unknown_route_uses_error_body(client):
    resp = await client.get("/api/payment/nope")
    assert resp.status_code == 404
    assert resp.json()["success"] is False


def test_sensitive_fields_are_masked():
    middleware = LoggingMiddleware(app=lambda scope, receive, send: None)
    masked = middleware._sanitize_data(
        {"razorpay_signature": "abc", "nested": [{"userPhone": "999"}], "amount": 5}
    )
    assert masked == {"razorpay_signature": "***", "nested": [{"userPhone": "***"}], "amount": 5}
