from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Tutorly"
    app_env: str = "dev"
    debug: bool = False
    log_level: str = "INFO"

    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    store_key_prefix: str = Field(default="tutorly", alias="TUTORLY_STORE_KEY_PREFIX")

    timezone: str = Field(default="UTC", alias="TUTORLY_TIMEZONE")

    accrual_poll_seconds: int = Field(default=60, alias="ACCRUAL_POLL_SECONDS")
    listing_window_days: int = Field(default=30, alias="LISTING_WINDOW_DAYS")
    accrual_window_days: int = Field(default=365, alias="ACCRUAL_WINDOW_DAYS")

    day_start_hour: float = Field(default=8.0, alias="DAY_START_HOUR")
    suggestion_limit: int = Field(default=5, alias="SUGGESTION_LIMIT")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
