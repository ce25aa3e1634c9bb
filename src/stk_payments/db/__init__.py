# stk_payments/db/__init__.py

from .base import Base, get_session
from .billing.payment_orm import PaymentORM


__all__ = [
    "Base",
    "get_session",
    "PaymentORM",
]
