class PaymentClientError(Exception):
    """Base class."""


class ValidationError(PaymentClientError):
    """Bad amount or phone number, raised before any side effect."""


class IntegrationError(PaymentClientError):
    """The payment gateway could not be reached or answered garbage."""


class NotFoundError(PaymentClientError):
    pass


class StorageError(PaymentClientError):
    pass
