"""Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="MARKETPLACE_",
        extra="ignore",
    )

    # API
    api_version: str = "0.1.0"
    debug: bool = False

    # Database
    database_url: str = "postgresql+asyncpg://marketplace:marketplace_dev_password@db:5432/marketplace"
    auto_create_schema: bool = False

    # Transactions
    transaction_isolation: str = "SERIALIZABLE"
    transaction_retry_attempts: int = 3
    lock_timeout_ms: int = 2000
    sqlite_busy_timeout_s: float = 5.0

    # Authentication
    api_key: str = "dev-api-key-change-in-production"

    # Pricing
    currency: str = "USD"

    # Audit
    audit_sink: str = "log"

    # Logging
    log_level: str = "INFO"
    log_json: bool = True


settings = Settings()
