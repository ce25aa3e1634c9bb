# stk_payments/server/deps.py
from typing import Optional

from stk_payments import PaymentClient, create_payment_client

_client: Optional[PaymentClient] = None


async def get_payment_client() -> PaymentClient:
    """
    Один PaymentClient (и один пул соединений) на процесс. В тестах подменяется через dependency_overrides.
    Выполняется в event loop; между проверкой и присваиванием нет await.
    """
    global _client
    if _client is None:
        _client = create_payment_client()
    return _client


async def close_payment_client():
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
