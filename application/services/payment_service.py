"""
Application service orchestrating the payment lifecycle.

Depends only on the PaymentGateway / AdminNotifier ports and a unit-of-work
factory. Concrete adapters are injected from the composition root (API
lifespan, Celery tasks), keeping dependencies one-way.

Money that has already moved at the gateway is never reported as a total
failure: ledger problems after a successful gateway call degrade the
response instead of failing it.
"""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Optional

from application.dtos.payments import (
    CaptureResult,
    CreateOrderResult,
    GatewayOrder,
    OrderStatusResult,
    RefundResult,
    TransactionDTO,
    VerifyPaymentResult,
)
from application.ports.admin_notifier import AdminNotifier
from application.ports.payment_gateway import PaymentGateway
from application.utils.background import BackgroundTasks
from core.logging_config import get_logger
from domain.common.exceptions import (
    BusinessException,
    DomainValidationException,
    InvalidTransitionException,
    SignatureConfigurationException,
    TransactionNotFoundException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payment.entity import DEFAULT_CURRENCY, TRANSACTION_ID_PREFIX, PaymentStatus, Transaction
from domain.payment.events import PaymentEvent, RefundEvent
from domain.payment.signature import verify_signature
from shared.codes.payment_codes import SIGNATURE_VERIFICATION_FAILED, VERIFICATION_ERROR


logger = get_logger(__name__)

UnitOfWorkFactory = Callable[..., AbstractUnitOfWork]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentService:
    def __init__(
        self,
        gateway: PaymentGateway,
        uow_factory: UnitOfWorkFactory,
        *,
        signature_secret: Optional[str],
        notifier: Optional[AdminNotifier] = None,
        background: Optional[BackgroundTasks] = None,
        default_currency: str = DEFAULT_CURRENCY,
        transaction_prefix: str = TRANSACTION_ID_PREFIX,
    ) -> None:
        self.gateway = gateway
        self.uow_factory = uow_factory
        self.notifier = notifier
        self.background = background or BackgroundTasks()
        self._signature_secret = signature_secret
        self.default_currency = default_currency
        self.transaction_prefix = transaction_prefix

    # ---- create order ----

    async def create_order(
        self,
        amount: Decimal,
        currency: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
        *,
        user_id: Optional[str] = None,
        user_email: Optional[str] = None,
        user_phone: Optional[str] = None,
    ) -> CreateOrderResult:
        amount = Decimal(str(amount))
        if amount <= 0:
            raise DomainValidationException("Amount must be greater than 0", field="amount")
        currency = (currency or self.default_currency).upper()

        order = await self.gateway.create_order(amount, currency, metadata or {})
        logger.info("gateway_order_created", order_id=order.id, amount=str(amount), currency=currency)

        try:
            transaction = Transaction.open(
                order_id=order.id,
                amount=amount,
                currency=currency,
                user_id=user_id,
                user_email=user_email,
                user_phone=user_phone,
                notes=order.notes,
                metadata=metadata,
                prefix=self.transaction_prefix,
            )
            async with self.uow_factory() as uow:
                saved = await uow.transactions.create(transaction)
        except Exception as exc:
            # the order exists upstream; hand it back so the client can still pay
            logger.error(
                "transaction_persist_failed_after_order",
                order_id=order.id,
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
            return CreateOrderResult(order=order, transaction_id=None)

        return CreateOrderResult(order=order, transaction_id=saved.transaction_id)

    # ---- verify payment ----

    async def verify_payment(
        self,
        order_id: str,
        payment_id: str,
        signature: str,
        payment_method: Optional[str] = None,
    ) -> VerifyPaymentResult:
        if not self._signature_secret:
            raise SignatureConfigurationException()

        try:
            return await self._verify(order_id, payment_id, signature, payment_method)
        except (TransactionNotFoundException, InvalidTransitionException):
            raise
        except Exception as exc:
            await self._mark_error(order_id, exc)
            raise

    async def _verify(
        self,
        order_id: str,
        payment_id: str,
        signature: str,
        payment_method: Optional[str],
    ) -> VerifyPaymentResult:
        outcome = verify_signature(order_id, payment_id, signature, self._signature_secret)

        if not outcome.valid:
            logger.warning("payment_signature_invalid", order_id=order_id, payment_id=payment_id)
            async with self.uow_factory() as uow:
                failed = await uow.transactions.update_status(
                    order_id,
                    PaymentStatus.FAILED,
                    error_code=SIGNATURE_VERIFICATION_FAILED,
                    error_description=outcome.reason,
                )
            if failed is None:
                logger.info("payment_signature_invalid_row_unchanged", order_id=order_id)
            return VerifyPaymentResult(
                success=False,
                message="Payment verification failed",
                error=outcome.reason,
                transaction=TransactionDTO.from_entity(failed),
            )

        method = payment_method or await self._lookup_method(payment_id)

        async with self.uow_factory() as uow:
            paid = await uow.transactions.mark_paid(
                order_id,
                payment_id=payment_id,
                payment_method=method,
                signature=signature,
                verified_at=_utcnow(),
            )
            if paid is None:
                current = await uow.transactions.get_by_order_id(order_id)

        if paid is None:
            if current is None:
                raise TransactionNotFoundException(order_id=order_id)
            if current.is_replay_of(payment_id):
                logger.info("payment_verification_replayed", order_id=order_id, payment_id=payment_id)
                return VerifyPaymentResult(
                    success=True,
                    message=outcome.reason,
                    transaction=TransactionDTO.from_entity(current),
                )
            current.ensure_can_transition(PaymentStatus.SUCCESS)
            # the guarded update lost a race against a concurrent transition
            raise InvalidTransitionException(
                current.payment_status.value, PaymentStatus.SUCCESS.value, order_id=order_id
            )

        logger.info("payment_verified", order_id=order_id, payment_id=payment_id, method=method)
        self._notify(PaymentEvent.from_transaction(paid), name=f"notify-payment-{order_id}")
        return VerifyPaymentResult(
            success=True,
            message=outcome.reason,
            transaction=TransactionDTO.from_entity(paid),
        )

    async def _lookup_method(self, payment_id: str) -> Optional[str]:
        """Payment method from the gateway; enrichment only, never blocks verification"""
        try:
            payment = await self.gateway.fetch_payment(payment_id)
        except Exception as exc:
            logger.warning("payment_method_lookup_failed", payment_id=payment_id, error=str(exc))
            return None
        return payment.method

    async def _mark_error(self, order_id: str, cause: BaseException) -> None:
        """Compensating pending -> error transition; its own failure is only logged"""
        description = cause.message if isinstance(cause, BusinessException) else str(cause)
        try:
            async with self.uow_factory() as uow:
                updated = await uow.transactions.update_status(
                    order_id,
                    PaymentStatus.ERROR,
                    error_code=VERIFICATION_ERROR,
                    error_description=(description or type(cause).__name__)[:500],
                )
        except Exception as exc:
            logger.error(
                "transaction_mark_error_failed",
                order_id=order_id,
                error=str(exc),
                original_error=str(cause),
            )
            return
        logger.warning(
            "transaction_marked_error",
            order_id=order_id,
            applied=updated is not None,
            original_error=str(cause),
        )

    # ---- order status ----

    async def get_order_status(self, order_id: str) -> OrderStatusResult:
        order: GatewayOrder = await self.gateway.fetch_order(order_id)

        transaction = None
        try:
            async with self.uow_factory(readonly=True) as uow:
                transaction = await uow.transactions.get_by_order_id(order_id)
        except Exception as exc:
            logger.warning("order_status_ledger_lookup_failed", order_id=order_id, error=str(exc))

        return OrderStatusResult(order=order, transaction=TransactionDTO.from_entity(transaction))

    # ---- refund ----

    async def refund(self, payment_id: str, amount: Optional[Decimal] = None) -> RefundResult:
        if amount is not None:
            amount = Decimal(str(amount))
            if amount <= 0:
                raise DomainValidationException("Refund amount must be greater than 0", field="amount")

        existing = await self._find_for_refund(payment_id)
        if existing is not None:
            existing.ensure_can_transition(PaymentStatus.REFUNDED)

        refund = await self.gateway.create_refund(payment_id, amount)
        logger.info("gateway_refund_created", payment_id=payment_id, refund_id=refund.id, amount=str(refund.amount))

        self._notify(
            RefundEvent(
                refund_id=refund.id,
                payment_id=payment_id,
                amount=refund.amount,
                currency=refund.currency,
                status=refund.status or "processed",
            ),
            name=f"notify-refund-{refund.id}",
        )

        refund_amount = amount if amount is not None else refund.amount
        reconciliation = "updated"
        transaction = None
        try:
            async with self.uow_factory() as uow:
                transaction = await uow.transactions.mark_refunded(
                    payment_id,
                    refund_id=refund.id,
                    refund_amount=refund_amount,
                    refunded_at=_utcnow(),
                )
                if transaction is None:
                    current = await uow.transactions.get_by_payment_id(payment_id)
                    reconciliation = "absent" if current is None else "failed"
        except Exception as exc:
            reconciliation = "failed"
            logger.error(
                "refund_ledger_update_failed",
                payment_id=payment_id,
                refund_id=refund.id,
                error=str(exc),
                exc_info=True,
            )

        if reconciliation != "updated":
            logger.warning(
                "refund_not_reconciled",
                payment_id=payment_id,
                refund_id=refund.id,
                reconciliation=reconciliation,
            )

        return RefundResult(
            success=True,
            refund=refund,
            transaction=TransactionDTO.from_entity(transaction),
            reconciliation=reconciliation,
        )

    async def _find_for_refund(self, payment_id: str) -> Optional[Transaction]:
        try:
            async with self.uow_factory(readonly=True) as uow:
                return await uow.transactions.get_by_payment_id(payment_id)
        except Exception as exc:
            logger.warning("refund_precheck_failed", payment_id=payment_id, error=str(exc))
            return None

    # ---- capture ----

    async def capture_payment(
        self, payment_id: str, amount: Decimal, currency: Optional[str] = None
    ) -> CaptureResult:
        amount = Decimal(str(amount))
        if amount <= 0:
            raise DomainValidationException("Capture amount must be greater than 0", field="amount")
        payment = await self.gateway.capture_payment(payment_id, amount, (currency or self.default_currency).upper())
        logger.info("gateway_payment_captured", payment_id=payment_id, amount=str(amount))
        return CaptureResult(success=True, payment=payment)

    # ---- helpers ----

    def _notify(self, event, *, name: str) -> None:
        if self.notifier is None:
            return
        self.background.spawn(self.notifier.notify(event), name=name)
