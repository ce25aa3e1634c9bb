# stk_payments/server/callbacks.py
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from stk_payments import PaymentClient
from stk_payments.models import CallbackAck
from .deps import get_payment_client

logger = logging.getLogger(__name__)

router = APIRouter(tags=["M-Pesa callback"])


@router.post("/api/mpesa-callback", response_model=CallbackAck)
async def mpesa_callback(
    request: Request,
    client: Annotated[PaymentClient, Depends(get_payment_client)],
):
    """
    Принимает колбэк Safaricom о завершении STK push.

    M-Pesa ждет HTTP 200 с ResultCode/ResultDesc. Даже если обработка упала,
    отвечаем 200, иначе шлюз будет бесконечно повторять доставку.
    """
    try:
        payload = await request.json()
        logger.info(f"M-Pesa callback received: {payload}")
        return await client.handle_callback(payload)
    except Exception as e:
        logger.exception(f"Error processing M-Pesa callback: {e}")
        return CallbackAck(result_code=1, result_desc="Internal server error")
