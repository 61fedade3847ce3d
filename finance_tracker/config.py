"""
Application configuration.

Values come from environment variables prefixed with ``FINANCE_`` (or a
``.env`` file). Financial parameters that users edit at runtime (pro-labore,
INSS, bracket override) are not here: they live in the ``settings`` table and
are read through :mod:`finance_tracker.services.settings`.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FINANCE_",
        env_file=".env",
        extra="ignore",
    )

    database_url: str = Field(
        default="sqlite:///./finance.db",
        description="SQLAlchemy database URL",
    )
    secret_key: str = Field(
        default="change-me-in-production",
        description="Key used to sign JWT access tokens",
    )
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 15
    refresh_token_expire_days: int = 7

    environment: str = Field(default="development", description="development or production")
    log_level: str = "INFO"

    scheduler_enabled: bool = True
    settings_cache_ttl_seconds: int = 300
    invite_code_days: int = 7

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache
def get_settings() -> AppSettings:
    return AppSettings()
