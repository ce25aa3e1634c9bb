# Файл: src/stk_payments/config.py

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

MPESA_BASE_URLS = {
    "sandbox": "https://sandbox.safaricom.co.ke",
    "production": "https://api.safaricom.co.ke",
}


# --- 1. Настройки PostgreSQL ---
class PostgresConfig(BaseModel):
    user: str = "postgres"
    password: str = "postgres"
    host: str = "localhost"
    port: int = 5432
    db: str = "payments"
    # Полный DSN перекрывает поля выше (например, sqlite+aiosqlite для тестов)
    dsn: str | None = None

    pool_size: int = 5
    max_overflow: int = 5
    pool_timeout: int = 30
    pool_recycle: int = 1800
    pool_pre_ping: bool = True
    application_name: str = "stk_payments"

    def get_pg_dsn(self) -> str:
        """Собирает DSN для SQLAlchemy из полей этого объекта."""
        if self.dsn:
            return self.dsn
        return f"postgresql+asyncpg://{self.user}:{self.password}@{self.host}:{self.port}/{self.db}"

    @property
    def is_postgres(self) -> bool:
        return self.get_pg_dsn().startswith("postgresql")


# --- 2. Настройки платёжного шлюза M-Pesa (Daraja) ---
class MpesaConfig(BaseModel):
    consumer_key: str = ""
    consumer_secret: str = ""
    shortcode: str = "174379"
    passkey: str = ""
    callback_base_url: str = "https://your-domain.com"
    callback_path: str = "/api/mpesa-callback"

    environment: str = Field("sandbox", pattern="^(sandbox|production)$")
    transaction_type: str = "CustomerPayBillOnline"
    account_reference: str = "Payment"
    transaction_desc: str = "Payment"
    request_timeout: float = 30.0

    @property
    def base_url(self) -> str:
        return MPESA_BASE_URLS[self.environment]

    @property
    def callback_url(self) -> str:
        return self.callback_base_url.rstrip("/") + self.callback_path


# --- 3. Основной класс для явной передачи конфигурации ---
class PaymentClientConfig(BaseModel):
    postgres: PostgresConfig = Field(default_factory=PostgresConfig)
    mpesa: MpesaConfig = Field(default_factory=MpesaConfig)


# --- 4. Settings для чтения из .env ---
class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    postgres: PostgresConfig = Field(default_factory=PostgresConfig)
    mpesa: MpesaConfig = Field(default_factory=MpesaConfig)


_cached_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Возвращает синглтон-экземпляр настроек, создавая его при первом вызове.
    Это предотвращает ошибки валидации при импорте.
    """
    global _cached_settings
    if _cached_settings is None:
        _cached_settings = Settings()
    return _cached_settings


def reset_settings() -> None:
    """Сбрасывает кэш; нужно тестам, которые меняют переменные окружения."""
    global _cached_settings
    _cached_settings = None
