# stk_payments/db/billing/payment_orm.py
from __future__ import annotations
from uuid import UUID, uuid4
from datetime import datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy import String, Numeric, Text, DateTime, Enum, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from ..base import Base, CreatedAt
from stk_payments.models.payment import PaymentInDB, PaymentStatus


class PaymentORM(Base):
    __tablename__ = "payments"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)

    # Целые шиллинги: шлюз принимает только целое Amount
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    # Канонический формат 2547XXXXXXXX, по нему строится история
    phone_number: Mapped[str] = mapped_column(String(12), nullable=False, index=True)

    # pending -> completed | failed, терминальные статусы не меняются
    status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, name="payment_status", native_enum=False, length=16),
        nullable=False,
        default=PaymentStatus.pending,
        index=True,
    )

    # Информация от платежного шлюза
    checkout_request_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, unique=True, index=True)
    transaction_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[CreatedAt]
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def to_pydantic(self) -> PaymentInDB:
        return PaymentInDB.model_validate(self)

    def __repr__(self) -> str:
        return f"<PaymentORM {self.id} {self.status.value} {self.checkout_request_id}>"
