# stk_payments/server/payments.py
from typing import Annotated, List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from stk_payments import PaymentClient
from stk_payments.exceptions import NotFoundError, ValidationError
from stk_payments.models import InitiatePaymentRequest, InitiatePaymentResult, PaymentInDB
from .deps import get_payment_client

router = APIRouter(prefix="/payments", tags=["Payments"])


def _validation_error_response(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=InitiatePaymentResult(success=False, error=message).model_dump(mode="json"),
    )


async def payment_request_validation_handler(request: Request, exc: RequestValidationError):
    """
    Ошибки разбора тела POST /payments (например, amount="abc") отдаются в том же виде
    {success: false, error}, что и ошибки суммы и номера. Остальные маршруты без изменений.
    """
    if request.method == "POST" and request.url.path == router.prefix:
        message = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'][1:]) or 'body'}: {err['msg']}" for err in exc.errors()
        )
        return _validation_error_response(message)
    return await request_validation_exception_handler(request, exc)


@router.post("", response_model=InitiatePaymentResult)
async def initiate_payment(
    body: InitiatePaymentRequest,
    client: Annotated[PaymentClient, Depends(get_payment_client)],
):
    """
    Запускает STK push на телефон плательщика.
    - 200: шлюз принял запрос, статус дальше меняется по колбэку.
    - 422: неверная сумма или номер, запись не создается.
    - 502: шлюз недоступен; запись остается pending.
    """
    try:
        result = await client.initiate_payment(body.amount, body.phone_number)
    except ValidationError as e:
        return _validation_error_response(str(e))
    if not result.success:
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=result.model_dump(mode="json"))
    return result


@router.get("", response_model=List[PaymentInDB])
async def list_payments(client: Annotated[PaymentClient, Depends(get_payment_client)]):
    """Последние 50 платежей, новые сверху."""
    return await client.get_all_payments()


@router.get("/by-phone/{phone_number}", response_model=List[PaymentInDB])
async def payments_by_phone(
    phone_number: str,
    client: Annotated[PaymentClient, Depends(get_payment_client)],
):
    try:
        return await client.get_payments_by_phone(phone_number)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))


@router.get("/{payment_id}", response_model=PaymentInDB)
async def get_payment(
    payment_id: UUID,
    client: Annotated[PaymentClient, Depends(get_payment_client)],
):
    try:
        return await client.require_payment(payment_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
