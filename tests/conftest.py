import json
import pytest
import pytest_asyncio
import httpx
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

# Импортируем Base для создания/удаления таблиц
from stk_payments.db.base import Base
from stk_payments import PaymentClient, PaymentRepository, MpesaRepository, MpesaConfig

TEST_CHECKOUT_ID = "ws_CO_191020261200001234"


class FakeGateway:
    """
    Поддельный Daraja API поверх httpx.MockTransport.
    Запоминает все запросы, ответы можно переопределить в тесте.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.token_response = httpx.Response(200, json={"access_token": "test-token", "expires_in": "3599"})
        self.push_response = httpx.Response(
            200,
            json={
                "MerchantRequestID": "29115-34620561-1",
                "CheckoutRequestID": TEST_CHECKOUT_ID,
                "ResponseCode": "0",
                "ResponseDescription": "Success. Request accepted for processing",
                "CustomerMessage": "Success. Request accepted for processing",
            },
        )
        self.push_error: Exception | None = None

    @staticmethod
    def _fresh(template: httpx.Response) -> httpx.Response:
        # Каждый запрос получает свой объект ответа
        return httpx.Response(template.status_code, content=template.content, headers=template.headers)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/oauth/v1/generate":
            return self._fresh(self.token_response)
        if request.url.path == "/mpesa/stkpush/v1/processrequest":
            if self.push_error is not None:
                raise self.push_error
            return self._fresh(self.push_response)
        return httpx.Response(404, json={"errorMessage": "not found"})

    @property
    def push_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/mpesa/stkpush/v1/processrequest"]

    def last_push_body(self) -> dict:
        return json.loads(self.push_requests[-1].content)


@pytest.fixture
def mpesa_config() -> MpesaConfig:
    return MpesaConfig(
        consumer_key="key",
        consumer_secret="secret",
        shortcode="174379",
        passkey="passkey",
        callback_base_url="https://pay.example.com",
    )


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def mpesa_repo(mpesa_config, gateway) -> MpesaRepository:
    return MpesaRepository(mpesa_config, transport=httpx.MockTransport(gateway.handler))


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path):
    """
    Создает движок для тестовой БД (файл SQLite) и создает в ней таблицы.
    После теста таблицы удаляются для полной изоляции.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'payments.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def payment_repo(db_engine) -> PaymentRepository:
    return PaymentRepository(async_sessionmaker(bind=db_engine, expire_on_commit=False))


@pytest.fixture
def payment_client(payment_repo, mpesa_repo, mpesa_config) -> PaymentClient:
    """PaymentClient на тестовой БД и поддельном шлюзе."""
    return PaymentClient(payment_repo=payment_repo, mpesa_repo=mpesa_repo, mpesa_config=mpesa_config)


def make_callback(checkout_request_id: str, result_code: int = 0, result_desc: str = "The service request is processed successfully.", items: list | None = None) -> dict:
    stk_callback = {
        "MerchantRequestID": "29115-34620561-1",
        "CheckoutRequestID": checkout_request_id,
        "ResultCode": result_code,
        "ResultDesc": result_desc,
    }
    if items is not None:
        stk_callback["CallbackMetadata"] = {"Item": items}
    return {"Body": {"stkCallback": stk_callback}}


def success_items(receipt: str = "ABC123", amount=100, phone=254712345678.0) -> list:
    return [
        {"Name": "Amount", "Value": amount},
        {"Name": "MpesaReceiptNumber", "Value": receipt},
        {"Name": "Balance"},
        {"Name": "TransactionDate", "Value": 20261019120000},
        {"Name": "PhoneNumber", "Value": phone},
    ]
