import json
import os
import sys
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _parse_processor_names(raw: str) -> list[str]:
    """Parse PAYMENT_PROCESSORS from a comma-separated or JSON array string."""
    raw = (raw or "").strip()
    if not raw:
        return []
    if raw.startswith("["):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValueError("PAYMENT_PROCESSORS is not a valid JSON array.") from exc
        return [str(item).strip() for item in parsed if str(item).strip()]
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Payments Log API"
    app_env: str = "local"
    api_v1_prefix: str = "/api/v1"

    postgres_dsn: str = "sqlite:///./payments.db"
    log_level: str = "INFO"
    metrics_enabled: bool = False

    # Names the summary reports on, in order; processors are free-text identifiers.
    payment_processors: str = "default,fallback"
    # Key for pg_advisory_xact_lock around structure setup.
    schema_setup_lock_key: int = 7340021
    payments_list_max_limit: int = 500

    @property
    def processor_names(self) -> list[str]:
        return _parse_processor_names(self.payment_processors)

    @model_validator(mode="after")
    def validate_production_guardrails(self) -> "Settings":
        # Raises on malformed JSON for every environment.
        names = self.processor_names
        if self.payments_list_max_limit < 1:
            raise ValueError("PAYMENTS_LIST_MAX_LIMIT must be at least 1.")

        if self.app_env.lower() != "production":
            return self

        if not self.postgres_dsn.startswith("postgresql"):
            raise ValueError("Production requires POSTGRES_DSN backed by PostgreSQL.")
        if not names:
            raise ValueError("Production requires at least one PAYMENT_PROCESSORS entry.")
        return self


@lru_cache
def get_settings() -> Settings:
    app_env = os.getenv("APP_ENV", "").lower()
    is_pytest_runtime = "pytest" in sys.modules
    if app_env == "test" or (not app_env and is_pytest_runtime):
        return Settings(app_env="test")
    return Settings()
