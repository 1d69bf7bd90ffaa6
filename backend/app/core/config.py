from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "payreq"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    APP_DOMAIN: str = "example.com"
    APP_DATABASE_DSN: str = "sqlite:////tmp/payreq.db"
    REDIS_URL: str = "redis://localhost:6379"

    # Invoices
    INVOICE_EXPIRATION_MINUTES: int = 15
    INVOICE_MAX_AMOUNT: int = 1_000_000

    # Event aggregator thread pool
    EVENT_WORKERS: int = 4

    # Deadline applied to pay attempts made over HTTP
    PAY_TIMEOUT_SECONDS: float = 30.0

    # Webhook signing
    webhook_secret: str = "whsec_default_secret"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    @property
    def version(self) -> str:
        return self.APP_VERSION


settings = Settings()
