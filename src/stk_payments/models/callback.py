# Файл: stk_payments/models/callback.py
"""
Схема колбэка STK push от M-Pesa:

    {"Body": {"stkCallback": {
        "MerchantRequestID": "...",
        "CheckoutRequestID": "ws_CO_...",
        "ResultCode": 0,
        "ResultDesc": "The service request is processed successfully.",
        "CallbackMetadata": {"Item": [
            {"Name": "Amount", "Value": 100},
            {"Name": "MpesaReceiptNumber", "Value": "ABC123"},
            {"Name": "TransactionDate", "Value": 20240101120000},
            {"Name": "PhoneNumber", "Value": 254712345678.0}
        ]}
    }}}
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# Шлюз присылает значения метаданных строками или числами вперемешку
MetadataValue = Union[int, float, str, None]


class CallbackMetadataItem(BaseModel):
    name: str = Field(..., alias="Name")
    value: MetadataValue = Field(None, alias="Value")


class CallbackMetadata(BaseModel):
    items: List[CallbackMetadataItem] = Field(default_factory=list, alias="Item")

    def as_dict(self) -> Dict[str, Any]:
        return {item.name: item.value for item in self.items}


class StkCallback(BaseModel):
    merchant_request_id: Optional[str] = Field(None, alias="MerchantRequestID")
    checkout_request_id: str = Field(..., alias="CheckoutRequestID")
    result_code: int = Field(..., alias="ResultCode")
    result_desc: str = Field("", alias="ResultDesc")
    callback_metadata: Optional[CallbackMetadata] = Field(None, alias="CallbackMetadata")

    @property
    def succeeded(self) -> bool:
        return self.result_code == 0

    @property
    def metadata(self) -> Dict[str, Any]:
        return self.callback_metadata.as_dict() if self.callback_metadata else {}

    @property
    def receipt_number(self) -> Optional[str]:
        value = self.metadata.get("MpesaReceiptNumber")
        return str(value) if value is not None else None

    @property
    def amount(self) -> Optional[Decimal]:
        value = self.metadata.get("Amount")
        return Decimal(str(value)) if value is not None else None

    @property
    def phone_number(self) -> Union[int, float, str, None]:
        return self.metadata.get("PhoneNumber")


class _CallbackBody(BaseModel):
    stk_callback: StkCallback = Field(..., alias="stkCallback")


class CallbackEnvelope(BaseModel):
    body: _CallbackBody = Field(..., alias="Body")

    @property
    def stk_callback(self) -> StkCallback:
        return self.body.stk_callback


class CallbackAck(BaseModel):
    """Ответ, которого ждёт шлюз. 0 - принято, 1 - внутренняя ошибка (всё равно HTTP 200)."""
    result_code: int = Field(0, alias="ResultCode")
    result_desc: str = Field("Success", alias="ResultDesc")

    model_config = ConfigDict(populate_by_name=True)
