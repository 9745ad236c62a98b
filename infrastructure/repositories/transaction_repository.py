"""
Transaction ledger backed by SQLAlchemy.

Every transition is one conditional UPDATE: the WHERE clause pins both the
row key and the allowed predecessor statuses, so a concurrent or repeated
transition matches zero rows instead of overwriting a terminal state.
"""
import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, List, Optional, Sequence

from sqlalchemy import case, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.common.exceptions import PersistenceException
from domain.payment.entity import PaymentStatus, Transaction, predecessors
from domain.payment.repository import TransactionRepository, TransactionStats
from infrastructure.models.transaction import PaymentTransactionModel


logger = get_logger(__name__)

_CENT = Decimal("0.01")


def _dump_json(value: Optional[dict]) -> Optional[str]:
    if not value:
        return None
    return json.dumps(value, ensure_ascii=False, default=str)


def _load_json(raw: Optional[str]) -> dict:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except ValueError:
        logger.warning("transaction_json_column_unreadable", raw=raw[:100])
        return {}
    return value if isinstance(value, dict) else {"value": value}


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value)).quantize(_CENT)


def _utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class SQLAlchemyTransactionRepository(TransactionRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: PaymentTransactionModel) -> Transaction:
        return Transaction(
            id=model.id,
            transaction_id=model.transaction_id,
            order_id=model.order_id,
            payment_id=model.payment_id,
            user_id=model.user_id,
            user_email=model.user_email,
            user_phone=model.user_phone,
            amount=Decimal(str(model.amount)),
            currency=model.currency,
            payment_status=PaymentStatus(model.payment_status),
            payment_method=model.payment_method,
            is_verified=bool(model.is_verified),
            razorpay_order_id=model.razorpay_order_id,
            razorpay_payment_id=model.razorpay_payment_id,
            razorpay_signature=model.razorpay_signature,
            error_code=model.error_code,
            error_description=model.error_description,
            is_refunded=bool(model.is_refunded),
            refund_id=model.refund_id,
            refund_amount=_to_decimal(model.refund_amount),
            notes=_load_json(model.notes),
            metadata=_load_json(model.extra_metadata),
            created_at=model.created_at,
            updated_at=model.updated_at,
            payment_date=model.payment_date,
            verification_date=model.verification_date,
            refund_date=model.refund_date,
        )

    def _to_model(self, entity: Transaction) -> PaymentTransactionModel:
        now = datetime.now(timezone.utc)
        return PaymentTransactionModel(
            transaction_id=entity.transaction_id,
            order_id=entity.order_id,
            payment_id=entity.payment_id,
            user_id=entity.user_id,
            user_email=entity.user_email,
            user_phone=entity.user_phone,
            amount=entity.amount,
            currency=entity.currency,
            payment_status=entity.payment_status.value,
            payment_method=entity.payment_method,
            is_verified=entity.is_verified,
            is_refunded=entity.is_refunded,
            notes=_dump_json(entity.notes),
            extra_metadata=_dump_json(entity.metadata),
            created_at=entity.created_at or now,
            updated_at=entity.updated_at or now,
        )

    async def create(self, transaction: Transaction) -> Transaction:
        model = self._to_model(transaction)
        try:
            self.session.add(model)
            await self.session.flush()
            await self.session.refresh(model)
        except IntegrityError as e:
            logger.warning("transaction_create_conflict", order_id=transaction.order_id, error=str(e.orig))
            raise PersistenceException(
                "Transaction already exists for this order",
                operation="create",
                details={"order_id": transaction.order_id},
            ) from e
        except SQLAlchemyError as e:
            raise PersistenceException(
                "Failed to store transaction", operation="create", details={"order_id": transaction.order_id}
            ) from e
        logger.info(
            "transaction_created",
            transaction_id=model.transaction_id,
            order_id=model.order_id,
            amount=str(model.amount),
        )
        return self._to_entity(model)

    async def _guarded_update(
        self,
        key_clause,
        target: PaymentStatus,
        values: dict,
        *,
        operation: str,
    ) -> bool:
        """Apply ``values`` to the row matched by ``key_clause`` if its status may move to ``target``."""
        allowed = [s.value for s in predecessors(target)]
        stmt = (
            update(PaymentTransactionModel)
            .where(key_clause, PaymentTransactionModel.payment_status.in_(allowed))
            .values(payment_status=target.value, updated_at=datetime.now(timezone.utc), **values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise PersistenceException("Failed to update transaction", operation=operation) from e
        return result.rowcount > 0

    async def _fetch_one(self, clause) -> Optional[Transaction]:
        try:
            result = await self.session.execute(
                select(PaymentTransactionModel)
                .where(clause)
                .order_by(PaymentTransactionModel.id.desc())
                .limit(1)
                .execution_options(populate_existing=True)
            )
        except SQLAlchemyError as e:
            raise PersistenceException("Failed to read transaction", operation="read") from e
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def mark_paid(
        self,
        order_id: str,
        *,
        payment_id: str,
        payment_method: Optional[str],
        signature: Optional[str],
        verified_at: datetime,
    ) -> Optional[Transaction]:
        applied = await self._guarded_update(
            PaymentTransactionModel.order_id == order_id,
            PaymentStatus.SUCCESS,
            {
                "payment_id": payment_id,
                "payment_method": payment_method,
                "razorpay_order_id": order_id,
                "razorpay_payment_id": payment_id,
                "razorpay_signature": signature,
                "is_verified": True,
                "verification_date": verified_at,
                "payment_date": verified_at,
                "error_code": None,
                "error_description": None,
            },
            operation="mark_paid",
        )
        if not applied:
            return None
        logger.info("transaction_marked_paid", order_id=order_id, payment_id=payment_id)
        return await self.get_by_order_id(order_id)

    async def update_status(
        self,
        order_id: str,
        status: PaymentStatus,
        *,
        error_code: Optional[str] = None,
        error_description: Optional[str] = None,
    ) -> Optional[Transaction]:
        status = PaymentStatus(status)
        applied = await self._guarded_update(
            PaymentTransactionModel.order_id == order_id,
            status,
            {"error_code": error_code, "error_description": error_description},
            operation="update_status",
        )
        if not applied:
            return None
        logger.info("transaction_status_updated", order_id=order_id, status=status.value, error_code=error_code)
        return await self.get_by_order_id(order_id)

    async def mark_refunded(
        self,
        payment_id: str,
        *,
        refund_id: str,
        refund_amount: Decimal,
        refunded_at: datetime,
    ) -> Optional[Transaction]:
        applied = await self._guarded_update(
            self._payment_id_clause(payment_id),
            PaymentStatus.REFUNDED,
            {
                "is_refunded": True,
                "refund_id": refund_id,
                "refund_amount": refund_amount,
                "refund_date": refunded_at,
            },
            operation="mark_refunded",
        )
        if not applied:
            return None
        logger.info("transaction_marked_refunded", payment_id=payment_id, refund_id=refund_id)
        return await self.get_by_payment_id(payment_id)

    @staticmethod
    def _payment_id_clause(payment_id: str):
        return or_(
            PaymentTransactionModel.payment_id == payment_id,
            PaymentTransactionModel.razorpay_payment_id == payment_id,
        )

    async def get_by_order_id(self, order_id: str) -> Optional[Transaction]:
        return await self._fetch_one(PaymentTransactionModel.order_id == order_id)

    async def get_by_payment_id(self, payment_id: str) -> Optional[Transaction]:
        return await self._fetch_one(self._payment_id_clause(payment_id))

    async def get_by_transaction_id(self, transaction_id: str) -> Optional[Transaction]:
        return await self._fetch_one(PaymentTransactionModel.transaction_id == transaction_id)

    async def _fetch_many(self, query) -> List[Transaction]:
        query = query.order_by(
            PaymentTransactionModel.created_at.desc(),
            PaymentTransactionModel.id.desc(),
        )
        try:
            result = await self.session.execute(query)
        except SQLAlchemyError as e:
            raise PersistenceException("Failed to list transactions", operation="list") from e
        return [self._to_entity(m) for m in result.scalars().all()]

    async def list_recent(
        self,
        limit: int = 50,
        offset: int = 0,
        status: Optional[PaymentStatus] = None,
    ) -> List[Transaction]:
        query = select(PaymentTransactionModel)
        if status is not None:
            query = query.where(PaymentTransactionModel.payment_status == PaymentStatus(status).value)
        return await self._fetch_many(query.offset(offset).limit(limit))

    async def list_updated_since(
        self,
        since: datetime,
        statuses: Sequence[PaymentStatus],
        limit: int = 100,
    ) -> List[Transaction]:
        m = PaymentTransactionModel
        query = (
            select(m)
            .where(m.updated_at >= since)
            .where(m.payment_status.in_([PaymentStatus(s).value for s in statuses]))
            .order_by(m.updated_at.desc())
        )
        return await self._fetch_many(query.limit(limit))

    async def list_by_user(self, user_id: str, limit: int = 50, offset: int = 0) -> List[Transaction]:
        query = select(PaymentTransactionModel).where(PaymentTransactionModel.user_id == user_id)
        return await self._fetch_many(query.offset(offset).limit(limit))

    async def stats(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> TransactionStats:
        m = PaymentTransactionModel

        def count_where(cond):
            return func.coalesce(func.sum(case((cond, 1), else_=0)), 0)

        is_success = m.payment_status == PaymentStatus.SUCCESS.value
        query = select(
            func.count(m.id),
            count_where(is_success),
            count_where(m.payment_status == PaymentStatus.FAILED.value),
            count_where(m.payment_status == PaymentStatus.PENDING.value),
            count_where(m.payment_status == PaymentStatus.ERROR.value),
            count_where(m.is_refunded.is_(True)),
            func.coalesce(func.sum(case((is_success, m.amount), else_=None)), 0),
            func.avg(case((is_success, m.amount), else_=None)),
        )
        if start is not None:
            query = query.where(m.created_at >= _utc(start))
        if end is not None:
            query = query.where(m.created_at <= _utc(end))

        try:
            row = (await self.session.execute(query)).one()
        except SQLAlchemyError as e:
            raise PersistenceException("Failed to compute transaction stats", operation="stats") from e

        return TransactionStats(
            total_transactions=int(row[0] or 0),
            successful_payments=int(row[1]),
            failed_payments=int(row[2]),
            pending_payments=int(row[3]),
            error_payments=int(row[4]),
            refunded_payments=int(row[5]),
            total_revenue=_to_decimal(row[6]),
            average_transaction_value=_to_decimal(row[7]),
        )

    async def delete_stale_pending(self, older_than: datetime) -> int:
        stmt = (
            delete(PaymentTransactionModel)
            .where(
                PaymentTransactionModel.payment_status == PaymentStatus.PENDING.value,
                PaymentTransactionModel.created_at < _utc(older_than),
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise PersistenceException("Failed to delete stale transactions", operation="delete_stale_pending") from e
        deleted = result.rowcount or 0
        logger.info("stale_pending_transactions_deleted", count=deleted, older_than=older_than.isoformat())
        return deleted
