"""
API dependencies - services assembled from the collaborators held on app.state
"""
from fastapi import Depends, Request

from application.ports.payment_gateway import PaymentGateway
from application.services.ledger_service import LedgerService
from application.services.payment_service import PaymentService
from core.config import settings
from core.settings import payment_settings
from domain.common.exceptions import BusinessException
from infrastructure.database import Database
from infrastructure.unit_of_work import uow_factory
from shared.codes import BusinessCode


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_gateway(request: Request) -> PaymentGateway:
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        raise BusinessException(
            code=BusinessCode.SERVICE_UNAVAILABLE,
            message="Payment gateway is not configured",
            error_type="ServiceUnavailable",
        )
    return gateway


async def get_payment_service(
    request: Request,
    gateway: PaymentGateway = Depends(get_gateway),
    database: Database = Depends(get_database),
) -> PaymentService:
    return PaymentService(
        gateway,
        uow_factory(database),
        signature_secret=getattr(request.app.state, "signature_secret", payment_settings.razorpay.key_secret),
        notifier=getattr(request.app.state, "notifier", None),
        background=request.app.state.background,
        default_currency=payment_settings.razorpay.default_currency,
        transaction_prefix=payment_settings.ledger.transaction_prefix,
    )


async def get_ledger_service(
    request: Request,
    database: Database = Depends(get_database),
) -> LedgerService:
    return LedgerService(
        uow_factory(database),
        notifier=getattr(request.app.state, "notifier", None),
        default_page_size=settings.DEFAULT_PAGE_SIZE,
        max_page_size=settings.MAX_PAGE_SIZE,
    )
