from .pg_repositoryPayment import PaymentRepository
from .mpesa_repository import MpesaRepository

__all__ = [
    "PaymentRepository",
    "MpesaRepository",
]
