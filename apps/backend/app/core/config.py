from decimal import Decimal
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "Shared Finance Backend"
    ENV: str = "dev"

    # Default SQLite file DB next to apps/backend, absolute so the CWD does not matter
    _default_db_path = Path(__file__).resolve().parents[2] / "db.sqlite3"
    DATABASE_URL: str = f"sqlite:///{_default_db_path}"

    CORS_ORIGINS: list[str] = ["*"]
    TIMEZONE: str = "America/Sao_Paulo"
    LOG_LEVEL: str = "INFO"

    # Single tolerance for "effectively equal" checks on client-submitted money
    MONEY_TOLERANCE: Decimal = Decimal("0.01")
    NOTIFICATION_RETENTION_DAYS: int = 365
    DATE_DISPLAY_FORMAT: str = "%d/%m/%Y"

    # Friend requests: per-pair hourly cap and cleanup horizons
    FRIEND_REQUEST_HOURLY_LIMIT: int = 7
    FRIEND_REQUEST_PENDING_DAYS: int = 7
    FRIEND_REQUEST_CANCELLED_HOURS: int = 24
    FRIEND_REQUEST_LOG_DAYS: int = 30
    # Budget status turns YELLOW at this share of the limit when no soft limit is set
    BUDGET_WARNING_PERCENT: Decimal = Decimal("80")

    model_config = SettingsConfigDict(env_file=(".env",), env_prefix="FIN_", case_sensitive=False)


settings = Settings()
