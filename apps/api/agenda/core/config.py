"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Database
    DATABASE_URL: str
    # Seconds a writer waits for the per-provider lock before giving up (SQLite busy timeout)
    DB_LOCK_TIMEOUT_SECONDS: float = 5.0

    # Payment provider (refunds only)
    PAYMENT_API_URL: str = "http://localhost:8081"
    PAYMENT_API_KEY: str = ""
    PAYMENT_TIMEOUT_SECONDS: float = 10.0
    # Shared secret expected in X-Webhook-Secret on refund notifications
    PAYMENT_WEBHOOK_SECRET: str = ""

    # Logging
    LOG_LEVEL: str = "INFO"

    @property
    def is_dev(self) -> bool:
        return self.ENV == "dev"


settings = Settings()
