# stk_payments/repositories/pg_repositoryPayment.py

import logging
from uuid import UUID
from decimal import Decimal
from typing import List, Optional
from datetime import timedelta
from sqlalchemy import select, update, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, AsyncSession

from stk_payments.db import PaymentORM
from stk_payments.db.base import get_session, utcnow
from stk_payments.exceptions import StorageError, ValidationError
from stk_payments.models import PaymentInDB, PaymentStatus
from stk_payments.utils.phone import normalize_gateway_phone_number

logger = logging.getLogger(__name__)

PHONE_HISTORY_LIMIT = 10
LISTING_LIMIT = 50


class PaymentRepository:
    """
    Репозиторий платежей: создание, привязка CheckoutRequestID, финализация по колбэку
    и выборки для истории.
    """
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def check_connection(self):
        """Проверяет соединение с базой данных, выполняя простой запрос."""
        logger.debug("Checking database connection...")
        async with get_session(self._session_factory) as session:
            try:
                await session.execute(text("SELECT 1"))
                logger.debug("Database connection successful.")
            except SQLAlchemyError as e:
                logger.error(f"Database connection failed: {e}")
                raise StorageError("Failed to connect to the database.") from e

    async def create(self, amount: Decimal, phone_number: str) -> UUID:
        """Создает запись со статусом pending и возвращает её ID."""
        async with get_session(self._session_factory) as session:
            try:
                payment = PaymentORM(amount=amount, phone_number=phone_number, status=PaymentStatus.pending)
                session.add(payment)
                await session.flush()
                payment_id = payment.id
                await session.commit()
                logger.info(f"Created pending payment {payment_id} for {phone_number}")
                return payment_id
            except SQLAlchemyError as e:
                await session.rollback()
                raise StorageError(f"Failed to create payment: {e}") from e

    async def attach_checkout_request_id(self, payment_id: UUID, checkout_request_id: str) -> None:
        async with get_session(self._session_factory) as session:
            try:
                stmt = (
                    update(PaymentORM)
                    .where(PaymentORM.id == payment_id)
                    .values(checkout_request_id=checkout_request_id)
                )
                result = await session.execute(stmt)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise StorageError(f"Failed to attach CheckoutRequestID to payment {payment_id}: {e}") from e
        if result.rowcount == 0:
            logger.debug(f"Payment {payment_id} not found, CheckoutRequestID {checkout_request_id} not attached")

    async def finalize(
        self,
        checkout_request_id: str,
        status: PaymentStatus,
        transaction_id: Optional[str] = None,
        failure_reason: Optional[str] = None,
        confirmed_phone: str | int | float | None = None,
        confirmed_amount: Optional[Decimal] = None,
    ) -> Optional[PaymentInDB]:
        """
        Фиксирует итог платежа по CheckoutRequestID.

        - Записи нет: предупреждение в лог и None. Для шлюза это не ошибка,
          иначе он будет повторять доставку колбэка.
        - Запись уже в терминальном статусе (в том числе после параллельного колбэка):
          повторный колбэк игнорируется.
        - Иначе обновляются статус, updated_at и переданные поля. Номер из колбэка
          нормализуется и перезаписывает исходный.
        """
        phone = None
        if confirmed_phone is not None:
            try:
                phone = normalize_gateway_phone_number(confirmed_phone)
            except ValidationError as e:
                logger.warning(f"Ignoring confirmed phone for {checkout_request_id}: {e}")

        values = {"status": status, "updated_at": utcnow()}
        if transaction_id is not None:
            values["transaction_id"] = transaction_id
        if failure_reason is not None:
            values["failure_reason"] = failure_reason
        if phone is not None:
            values["phone_number"] = phone
        if confirmed_amount is not None:
            values["amount"] = confirmed_amount

        async with get_session(self._session_factory) as session:
            try:
                stmt = select(PaymentORM).where(PaymentORM.checkout_request_id == checkout_request_id)
                payment = (await session.execute(stmt)).scalar_one_or_none()
                if payment is None:
                    logger.warning(f"No payment matches CheckoutRequestID {checkout_request_id}; callback dropped")
                    return None
                requested_amount = payment.amount

                # Переход из pending только одним UPDATE: параллельный колбэк получит rowcount 0
                upd = (
                    update(PaymentORM)
                    .where(
                        PaymentORM.id == payment.id,
                        PaymentORM.status == PaymentStatus.pending,
                    )
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                result = await session.execute(upd)
                await session.commit()
                await session.refresh(payment)
            except SQLAlchemyError as e:
                await session.rollback()
                raise StorageError(f"Failed to finalize payment {checkout_request_id}: {e}") from e

            if result.rowcount == 0:
                logger.info(
                    f"Payment {payment.id} already {payment.status.value}; "
                    f"ignoring repeated callback ({status.value})"
                )
                return payment.to_pydantic()

            if confirmed_amount is not None and confirmed_amount != requested_amount:
                logger.warning(
                    f"Payment {payment.id}: gateway confirmed {confirmed_amount}, requested {requested_amount}"
                )
            logger.info(f"Payment {payment.id} finalized as {status.value}")
            return payment.to_pydantic()

    async def get_by_id(self, payment_id: UUID) -> Optional[PaymentInDB]:
        async with get_session(self._session_factory) as session:
            try:
                orm = await session.get(PaymentORM, payment_id)
            except SQLAlchemyError as e:
                raise StorageError(str(e)) from e
            return orm.to_pydantic() if orm else None

    async def get_by_checkout_request_id(self, checkout_request_id: str) -> Optional[PaymentInDB]:
        async with get_session(self._session_factory) as session:
            stmt = select(PaymentORM).where(PaymentORM.checkout_request_id == checkout_request_id)
            try:
                orm = (await session.execute(stmt)).scalar_one_or_none()
            except SQLAlchemyError as e:
                raise StorageError(str(e)) from e
            return orm.to_pydantic() if orm else None

    async def get_by_phone(self, phone_number: str, limit: int = PHONE_HISTORY_LIMIT) -> List[PaymentInDB]:
        """История по номеру, новые сверху, не больше 10 записей."""
        stmt = (
            select(PaymentORM)
            .where(PaymentORM.phone_number == phone_number)
            .order_by(PaymentORM.created_at.desc())
            .limit(min(limit, PHONE_HISTORY_LIMIT))
        )
        return await self._list(stmt)

    async def get_all(self, limit: int = LISTING_LIMIT) -> List[PaymentInDB]:
        """Все платежи для админки, новые сверху, не больше 50 записей."""
        stmt = select(PaymentORM).order_by(PaymentORM.created_at.desc()).limit(min(limit, LISTING_LIMIT))
        return await self._list(stmt)

    async def find_stale_pending(self, older_than: timedelta) -> List[PaymentInDB]:
        """Находит pending-платежи старше older_than (осиротевшие записи). Ничего не меняет."""
        cutoff = utcnow() - older_than
        stmt = (
            select(PaymentORM)
            .where(
                PaymentORM.status == PaymentStatus.pending,
                PaymentORM.created_at < cutoff,
            )
            .order_by(PaymentORM.created_at.desc())
        )
        return await self._list(stmt)

    async def _list(self, stmt) -> List[PaymentInDB]:
        async with get_session(self._session_factory) as session:
            try:
                result = await session.execute(stmt)
            except SQLAlchemyError as e:
                raise StorageError(str(e)) from e
            return [orm.to_pydantic() for orm in result.scalars().all()]
