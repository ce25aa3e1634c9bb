import logging
from uuid import UUID
from decimal import Decimal, InvalidOperation
from datetime import timedelta
from typing import Any, Dict, List, Optional

from stk_payments.config import MpesaConfig
from stk_payments.repositories import PaymentRepository, MpesaRepository
from stk_payments.models import (
    CallbackAck,
    CallbackEnvelope,
    InitiatePaymentResult,
    PaymentInDB,
    PaymentStatus,
)
from stk_payments.exceptions import IntegrationError, NotFoundError, StorageError, ValidationError
from stk_payments.utils.phone import normalize_phone_number

MIN_AMOUNT = Decimal(1)
MAX_AMOUNT = Decimal(150000)

logger = logging.getLogger(__name__)


def validate_amount(amount: Any) -> Decimal:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"Amount must be a number, got {amount!r}") from e
    if not value.is_finite():
        raise ValidationError(f"Amount must be a number, got {amount!r}")
    if value < MIN_AMOUNT:
        raise ValidationError("Amount must be at least KES 1")
    if value > MAX_AMOUNT:
        raise ValidationError("Amount cannot exceed KES 150,000")
    if value != value.to_integral_value():
        raise ValidationError("Amount must be a whole number of shillings")
    return value


class PaymentClient:
    """
    Единая точка доступа для бизнес-логики платежей:
    запуск STK push и разбор колбэка от шлюза.
    """

    def __init__(
        self,
        payment_repo: PaymentRepository | None = None,
        mpesa_repo: MpesaRepository | None = None,
        mpesa_config: MpesaConfig | None = None,
    ):
        self.payment_repo = payment_repo
        self.mpesa = mpesa_repo
        self.mpesa_config = mpesa_config or MpesaConfig()

    async def check_connections(self) -> dict[str, str]:
        """
        Проверяет доступность базы данных и платежного шлюза.
        Возвращает словарь со статусами.
        """
        statuses = {}

        try:
            await self.payment_repo.check_connection()
            statuses["database"] = "ok"
        except StorageError as e:
            statuses["database"] = f"failed: {e}"

        try:
            await self.mpesa.check_connection()
            statuses["mpesa"] = "ok"
        except IntegrationError as e:
            statuses["mpesa"] = f"failed: {e}"

        return statuses

    async def aclose(self):
        """Переопределяется фабрикой create_payment_client, чтобы закрыть движок."""

    # ――― atomic high-level ops ――― #

    async def initiate_payment(self, amount: Any, phone_number: str) -> InitiatePaymentResult:
        """
        Запускает оплату:
        1. проверяет сумму и номер (ValidationError до любых побочных эффектов);
        2. создает запись pending;
        3. получает токен и отправляет STK push;
        4. сохраняет CheckoutRequestID, если шлюз его вернул.

        Ошибки шагов 2-4 возвращаются как success=False. Созданная запись не
        откатывается и остается pending без CheckoutRequestID.
        """
        value = validate_amount(amount)
        phone = normalize_phone_number(phone_number)
        logger.info(f"Formatted phone: {phone_number} -> {phone}")

        payment_id: Optional[UUID] = None
        try:
            payment_id = await self.payment_repo.create(value, phone)
            response = await self.mpesa.submit_push_payment(value, phone, self.mpesa_config.callback_url)
            if response.checkout_request_id:
                await self.payment_repo.attach_checkout_request_id(payment_id, response.checkout_request_id)
        except Exception as e:
            logger.exception(f"STK push error for payment {payment_id}: {e}")
            return InitiatePaymentResult(success=False, payment_id=payment_id, error=str(e) or "Payment failed")

        return InitiatePaymentResult(
            success=True,
            checkout_request_id=response.checkout_request_id,
            payment_id=payment_id,
        )

    async def handle_callback(self, payload: Dict[str, Any]) -> CallbackAck:
        """
        Разбирает колбэк STK push и фиксирует итог платежа.

        Ответ всегда успешный, даже если запись не нашлась: иначе шлюз будет
        повторять доставку. Ошибки разбора и базы пробрасываются наверх,
        там их превращают в ответ с ResultCode=1.
        """
        callback = CallbackEnvelope.model_validate(payload).stk_callback
        logger.info(f"M-Pesa callback received for {callback.checkout_request_id}: {callback.result_code} {callback.result_desc}")

        if callback.succeeded:
            await self.payment_repo.finalize(
                callback.checkout_request_id,
                PaymentStatus.completed,
                transaction_id=callback.receipt_number,
                confirmed_phone=callback.phone_number,
                confirmed_amount=callback.amount,
            )
        else:
            await self.payment_repo.finalize(
                callback.checkout_request_id,
                PaymentStatus.failed,
                failure_reason=callback.result_desc or None,
            )
        return CallbackAck()

######################## QUERIES

    async def get_payment(self, payment_id: UUID) -> Optional[PaymentInDB]:
        return await self.payment_repo.get_by_id(payment_id)

    async def require_payment(self, payment_id: UUID) -> PaymentInDB:
        payment = await self.payment_repo.get_by_id(payment_id)
        if not payment:
            raise NotFoundError(f"Payment with id {payment_id} not found.")
        return payment

    async def get_payments_by_phone(self, phone_number: str) -> List[PaymentInDB]:
        """Последние 10 платежей по номеру; номер принимается в любом допустимом формате."""
        return await self.payment_repo.get_by_phone(normalize_phone_number(phone_number))

    async def get_all_payments(self) -> List[PaymentInDB]:
        return await self.payment_repo.get_all()

    async def find_stale_pending(self, older_than: timedelta) -> List[PaymentInDB]:
        """Pending-платежи, по которым так и не пришел колбэк. Только чтение."""
        return await self.payment_repo.find_stale_pending(older_than)
