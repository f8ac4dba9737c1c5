import os
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv()


class Settings:
    # Database
    POSTGRES_CONNECTION_STRING: str = os.getenv("POSTGRES_CONNECTION_STRING", "")
    FALLBACK_DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./orders.db")

    # API
    API_TOKEN: str = os.getenv("API_TOKEN", "")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Services
    IDENTITY_BASE_URL: str = os.getenv("IDENTITY_BASE_URL", "http://localhost:8081")
    CATALOG_BASE_URL: str = os.getenv("CATALOG_BASE_URL", "http://localhost:8082")
    PAYMENT_BASE_URL: str = os.getenv("PAYMENT_BASE_URL", "http://localhost:8084")
    HTTP_TIMEOUT: float = float(os.getenv("HTTP_TIMEOUT", "10"))
    PAYMENT_TIMEOUT: float = float(os.getenv("PAYMENT_TIMEOUT", "30"))

    # Checkout
    SHIPPING_COST: Decimal = Decimal(os.getenv("SHIPPING_COST", "3990.00"))
    DEFAULT_CURRENCY: str = os.getenv("DEFAULT_CURRENCY", "CLP")
    DEFAULT_PAYMENT_METHOD: str = os.getenv("DEFAULT_PAYMENT_METHOD", "CREDIT_CARD")

    @property
    def DATABASE_URL(self) -> str:
        """Асинхронный URL для приложения"""
        if not self.POSTGRES_CONNECTION_STRING:
            return self.FALLBACK_DATABASE_URL
        return self.POSTGRES_CONNECTION_STRING.replace("postgres://", "postgresql+asyncpg://")

    @property
    def SYNC_DATABASE_URL(self) -> str:
        """Синхронный URL для Alembic"""
        if not self.POSTGRES_CONNECTION_STRING:
            return self.FALLBACK_DATABASE_URL.replace("+aiosqlite", "")
        return self.POSTGRES_CONNECTION_STRING.replace("postgres://", "postgresql://")


settings = Settings()
