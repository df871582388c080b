"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache) — single instance per process

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for all non-secret settings: works out-of-the-box with docker-compose
    - smtp_host unset means "no transport": notifications are logged instead of mailed
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://leaveflow:leaveflow@db:5432/leaveflow"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosting providers hand out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # SMTP
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_from_address: str = "no-reply@leaveflow.local"
    smtp_from_name: str = "HR Management System"
    smtp_use_starttls: bool = True

    # Delivery queue
    delivery_workers: int = 3
    delivery_queue_capacity: int = 1000
    delivery_send_timeout_seconds: float = 30.0
    delivery_shutdown_grace_seconds: float = 10.0
    delivery_reconcile_interval_seconds: float = 120.0
    delivery_claim_lease_seconds: int = 300

    # Retry policy
    notification_max_retries: int = 3
    retry_base_delay_seconds: int = 300
    retry_max_delay_seconds: int = 86_400
    retry_jitter_ratio: float = 0.0

    # Leave policy
    salary_deduction_per_day: Decimal = Decimal("500.00")
    low_balance_threshold: int = 2

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
