# Файл: src/stk_payments/__init__.py

from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from .client import PaymentClient
from .config import get_settings, PaymentClientConfig, PostgresConfig, MpesaConfig
from .repositories.pg_repositoryPayment import PaymentRepository
from .repositories.mpesa_repository import MpesaRepository

from .exceptions import *


def _engine_kwargs(pg: PostgresConfig) -> dict:
    # Параметры пула и server_settings есть только у asyncpg/PostgreSQL
    if not pg.is_postgres:
        return {}
    return dict(
        pool_size=pg.pool_size,
        max_overflow=pg.max_overflow,
        pool_timeout=pg.pool_timeout,
        pool_recycle=pg.pool_recycle,
        pool_pre_ping=pg.pool_pre_ping,
        connect_args={"server_settings": {"application_name": pg.application_name}},
    )


def create_payment_client(config: Optional[PaymentClientConfig] = None) -> PaymentClient:
    """
    Фабричная функция для создания и конфигурации PaymentClient.

    :param config: Единый объект с настройками.
                   Если не предоставлен, используются переменные окружения.
    :return: Сконфигурированный экземпляр PaymentClient.
    """
    if config is None:
        s = get_settings()
        config = PaymentClientConfig(postgres=s.postgres, mpesa=s.mpesa)

    engine = create_async_engine(config.postgres.get_pg_dsn(), **_engine_kwargs(config.postgres))
    session_factory = async_sessionmaker(bind=engine, expire_on_commit=False)

    client = PaymentClient(
        payment_repo=PaymentRepository(session_factory),
        mpesa_repo=MpesaRepository(config.mpesa),
        mpesa_config=config.mpesa,
    )
    client._engine = engine

    async def _aclose():
        await engine.dispose()
    client.aclose = _aclose

    return client

__all__ = [
    "PaymentClient", "create_payment_client",
    "PaymentClientConfig", "PostgresConfig", "MpesaConfig",
    "PaymentRepository", "MpesaRepository",
    "PaymentClientError", "ValidationError", "IntegrationError", "NotFoundError", "StorageError",
]
