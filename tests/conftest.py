"""Pytest bootstrap configuration.

Environment defaults are set before any application module is imported so
settings objects pick them up at import time.
"""
import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RAZORPAY__KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY__KEY_SECRET", "rzp_test_secret")
os.environ.setdefault("ADMIN_PORTAL__URL", "http://admin.test")
os.environ.setdefault("ADMIN_PORTAL__API_KEY", "admin-key")
os.environ.setdefault("ADMIN_PORTAL__BATCH_DELAY", "0")

from decimal import Decimal  # noqa: E402
from typing import Optional  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from application.dtos.payments import (  # noqa: E402
    GatewayOrder,
    GatewayPayment,
    GatewayRefund,
    SyncReport,
)
from application.services.payment_service import PaymentService  # noqa: E402
from application.utils.background import BackgroundTasks  # noqa: E402
from domain.payment.signature import compute_signature  # noqa: E402
from infrastructure.database import Database  # noqa: E402
from infrastructure.external.admin_portal import NotificationError  # noqa: E402
from infrastructure.external.payments.exceptions import GatewayError  # noqa: E402
from infrastructure.unit_of_work import uow_factory  # noqa: E402


SECRET = "rzp_test_secret"


def sign(order_id: str, payment_id: str, secret: str = SECRET) -> str:
    return compute_signature(order_id, payment_id, secret)


class StubGateway:
    """In-memory gateway recording every call"""

    provider = "stub"

    def __init__(self) -> None:
        self.orders: dict[str, GatewayOrder] = {}
        self.calls: list[tuple] = []
        self.payment_method: Optional[str] = "upi"
        self.fail_fetch_payment = False
        self.fail_fetch_order = False
        self.fail_refund = False
        self._seq = 0

    async def create_order(self, amount, currency, notes=None):
        self._seq += 1
        order = GatewayOrder(
            id=f"order_{self._seq}",
            amount=Decimal(str(amount)),
            currency=currency,
            status="created",
            receipt=f"receipt_{self._seq}",
            notes=notes or {},
        )
        self.orders[order.id] = order
        self.calls.append(("create_order", amount, currency))
        return order

    async def fetch_order(self, order_id):
        self.calls.append(("fetch_order", order_id))
        if self.fail_fetch_order:
            raise GatewayError("upstream down", provider=self.provider)
        return self.orders.get(order_id) or GatewayOrder(
            id=order_id, amount=Decimal("500.00"), currency="INR", status="paid"
        )

    async def fetch_payment(self, payment_id):
        self.calls.append(("fetch_payment", payment_id))
        if self.fail_fetch_payment:
            raise GatewayError("upstream down", provider=self.provider)
        return GatewayPayment(
            id=payment_id, amount=Decimal("500.00"), currency="INR", status="captured", method=self.payment_method
        )

    async def create_refund(self, payment_id, amount=None):
        self.calls.append(("create_refund", payment_id, amount))
        if self.fail_refund:
            raise GatewayError("refund rejected", provider=self.provider)
        return GatewayRefund(
            id=f"rfnd_{payment_id}",
            payment_id=payment_id,
            amount=Decimal(str(amount)) if amount is not None else Decimal("500.00"),
            currency="INR",
            status="processed",
        )

    async def capture_payment(self, payment_id, amount, currency):
        self.calls.append(("capture_payment", payment_id, amount, currency))
        return GatewayPayment(
            id=payment_id, amount=Decimal(str(amount)), currency=currency, status="captured", captured=True
        )

    async def aclose(self):
        return None


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.events: list = []
        self.fail = fail

    async def notify(self, event) -> None:
        if self.fail:
            raise NotificationError("portal down", endpoint="/api/payments/webhook")
        self.events.append(event)

    async def batch_sync(self, transactions) -> SyncReport:
        report = SyncReport()
        for tx in transactions:
            self.events.append(tx)
            report.success += 1
        return report

    async def aclose(self) -> None:
        return None


@pytest_asyncio.fixture
async def database():
    db = Database("sqlite+aiosqlite:///:memory:")
    db.connect()
    await db.create_tables()
    try:
        yield db
    finally:
        await db.disconnect()


@pytest.fixture
def uow(database):
    return uow_factory(database)


@pytest.fixture
def gateway():
    return StubGateway()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def background():
    return BackgroundTasks()


@pytest.fixture
def service(gateway, uow, notifier, background):
    return PaymentService(
        gateway,
        uow,
        signature_secret=SECRET,
        notifier=notifier,
        background=background,
    )


@pytest.fixture
def signer():
    return sign


@pytest.fixture
def failing_notifier():
    return RecordingNotifier(fail=True)
