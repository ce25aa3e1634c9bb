# Файл: stk_payments/models/payment.py

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class PaymentStatus(str, enum.Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not PaymentStatus.pending


class PaymentCreate(BaseModel):
    amount: Decimal
    phone_number: str


class PaymentInDB(PaymentCreate):
    id: UUID
    status: PaymentStatus
    checkout_request_id: Optional[str] = None
    transaction_id: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# Запрос клиента на оплату. Границы суммы и формат номера проверяет PaymentClient,
# чтобы ошибки валидации выглядели одинаково для API и для прямых вызовов.
class InitiatePaymentRequest(BaseModel):
    amount: Decimal
    phone_number: str = Field(..., examples=["0712345678"])


class InitiatePaymentResult(BaseModel):
    success: bool
    checkout_request_id: Optional[str] = None
    payment_id: Optional[UUID] = None
    error: Optional[str] = None


class StkPushResponse(BaseModel):
    """Ответ шлюза на STK push. Все поля необязательны: при ошибке приходит errorMessage."""
    merchant_request_id: Optional[str] = Field(None, alias="MerchantRequestID")
    checkout_request_id: Optional[str] = Field(None, alias="CheckoutRequestID")
    response_code: Optional[str] = Field(None, alias="ResponseCode")
    response_description: Optional[str] = Field(None, alias="ResponseDescription")
    customer_message: Optional[str] = Field(None, alias="CustomerMessage")
    raw: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)
