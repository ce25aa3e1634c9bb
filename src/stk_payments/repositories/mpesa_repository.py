# stk_payments/repositories/mpesa_repository.py
import base64
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx

from stk_payments.config import MpesaConfig
from stk_payments.exceptions import IntegrationError
from stk_payments.models import StkPushResponse

logger = logging.getLogger(__name__)

EP_AUTH = "/oauth/v1/generate"
EP_STK_PUSH = "/mpesa/stkpush/v1/processrequest"


def build_timestamp(now: Optional[datetime] = None) -> str:
    """Метка времени запроса в формате Daraja: YYYYMMDDHHMMSS."""
    return (now or datetime.now()).strftime("%Y%m%d%H%M%S")


def build_password(shortcode: str, passkey: str, timestamp: str) -> str:
    return base64.b64encode(f"{shortcode}{passkey}{timestamp}".encode("utf-8")).decode("ascii")


class MpesaRepository:
    """
    Клиент платежного шлюза M-Pesa (Daraja): токен доступа и STK push.
    Повторов нет, любая транспортная ошибка превращается в IntegrationError.
    """
    def __init__(self, cfg: MpesaConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._cfg = cfg
        # transport подменяется в тестах на httpx.MockTransport
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._cfg.base_url,
            timeout=self._cfg.request_timeout,
            transport=self._transport,
        )

    def _basic_auth_header(self) -> str:
        credentials = f"{self._cfg.consumer_key}:{self._cfg.consumer_secret}"
        return "Basic " + base64.b64encode(credentials.encode("utf-8")).decode("ascii")

    async def check_connection(self):
        """Проверяет, что шлюз выдает токен с текущими ключами."""
        logger.debug(f"Checking M-Pesa gateway at {self._cfg.base_url}...")
        await self.get_access_token()
        logger.debug("M-Pesa gateway issued an access token.")

    async def get_access_token(self) -> str:
        try:
            async with self._client() as client:
                resp = await client.get(
                    EP_AUTH,
                    params={"grant_type": "client_credentials"},
                    headers={"Authorization": self._basic_auth_header()},
                )
            data = resp.json()
        except httpx.HTTPError as e:
            logger.error(f"M-Pesa token request failed: {e}")
            raise IntegrationError(f"Failed to obtain M-Pesa access token: {e}") from e
        except ValueError as e:
            raise IntegrationError(f"M-Pesa token endpoint returned non-JSON body (HTTP {resp.status_code})") from e

        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            logger.error(f"M-Pesa token response without access_token: HTTP {resp.status_code} {data}")
            raise IntegrationError("M-Pesa token response did not contain an access_token")
        return token

    def build_push_payload(self, amount: Decimal, phone_number: str, callback_url: str, timestamp: str) -> Dict[str, Any]:
        shortcode = self._cfg.shortcode
        return {
            "BusinessShortCode": shortcode,
            "Password": build_password(shortcode, self._cfg.passkey, timestamp),
            "Timestamp": timestamp,
            "TransactionType": self._cfg.transaction_type,
            "Amount": int(amount),
            "PartyA": phone_number,
            "PartyB": shortcode,
            "PhoneNumber": phone_number,
            "CallBackURL": callback_url,
            "AccountReference": self._cfg.account_reference,
            "TransactionDesc": self._cfg.transaction_desc,
        }

    async def submit_push_payment(self, amount: Decimal, phone_number: str, callback_url: str) -> StkPushResponse:
        """
        Отправляет STK push на телефон плательщика.

        Отсутствие CheckoutRequestID в ответе не считается ошибкой: запись платежа
        просто останется без него. Ошибкой считается только сбой транспорта.
        """
        token = await self.get_access_token()
        payload = self.build_push_payload(amount, phone_number, callback_url, build_timestamp())

        try:
            async with self._client() as client:
                resp = await client.post(
                    EP_STK_PUSH,
                    json=payload,
                    headers={"Authorization": f"Bearer {token}"},
                )
            data = resp.json()
        except httpx.HTTPError as e:
            logger.error(f"M-Pesa STK push request failed: {e}")
            raise IntegrationError(f"STK push request failed: {e}") from e
        except ValueError as e:
            raise IntegrationError(f"STK push endpoint returned non-JSON body (HTTP {resp.status_code})") from e

        if not isinstance(data, dict):
            data = {"body": data}
        result = StkPushResponse.model_validate({**data, "raw": data})
        if not result.checkout_request_id:
            logger.warning(f"STK push for {phone_number} returned no CheckoutRequestID: HTTP {resp.status_code} {data}")
        else:
            logger.info(f"STK push accepted for {phone_number}: {result.checkout_request_id}")
        return result
