from .payment import (
    PaymentStatus,
    PaymentCreate,
    PaymentInDB,
    InitiatePaymentRequest,
    InitiatePaymentResult,
    StkPushResponse,
)
from .callback import CallbackMetadataItem, CallbackMetadata, StkCallback, CallbackEnvelope, CallbackAck

__all__ = [
    "PaymentStatus", "PaymentCreate", "PaymentInDB", "InitiatePaymentRequest", "InitiatePaymentResult",
    "StkPushResponse", "CallbackMetadataItem", "CallbackMetadata", "StkCallback", "CallbackEnvelope", "CallbackAck",
]
