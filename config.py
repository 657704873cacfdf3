from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class ENV(BaseSettings):
    model_config = SettingsConfigDict(validate_default=True, env_file=".env", env_file_encoding="utf-8")

    DEBUG: bool = False

    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: str = "5432"
    POSTGRES_NAME: str = "marketplace"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASS: str = ""
    # Full URL override, e.g. sqlite+aiosqlite:///./local.db
    DATABASE_URL: str | None = None

    SERVICE_API_TOKEN: str = ""

    PAYSTACK_SECRET_KEY: str = ""
    PAYSTACK_BASE_URL: str = "https://api.paystack.co"
    PAYSTACK_WEBHOOK_SECRET: str | None = None
    PAYSTACK_CALLBACK_URL: str | None = None
    GATEWAY_TIMEOUT_SECONDS: float = 15.0

    PAYMENT_REFERENCE_PREFIX: str = "GROCHAIN"
    CURRENCY: str = "NGN"
    PLATFORM_FEE_RATE: Decimal = Decimal("0.03")
    DEFAULT_COMMISSION_RATE: Decimal = Decimal("0.05")
    COMMISSION_DUE_DAYS: int = 30
    # One credit point per this many currency units paid
    CREDIT_SCORE_UNIT: int = 1000
    WITHDRAWAL_FEE_RATES: dict[str, Decimal] = {
        "bank_transfer": Decimal("0.015"),
        "mobile_money": Decimal("0.01"),
        "wallet": Decimal("0"),
        "check": Decimal("0.02"),
        "other": Decimal("0"),
    }


class Settings():
    def __init__(self, env: ENV | None = None):
        self.env = env or ENV()

    def generate_postgres_url(self) -> str:
        return f"postgresql+asyncpg://{self.env.POSTGRES_USER}:{self.env.POSTGRES_PASS}@{self.env.POSTGRES_HOST}:{self.env.POSTGRES_PORT}/{self.env.POSTGRES_NAME}"

    def database_url(self) -> str:
        return self.env.DATABASE_URL or self.generate_postgres_url()

    def withdrawal_fee_rate(self, method: str) -> Decimal:
        return self.env.WITHDRAWAL_FEE_RATES.get(method, Decimal("0"))


@lru_cache
def get_settings() -> Settings:
    return Settings()
