from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_env: str = "local"
    api_v1_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Security
    secret_key: str = "changeme"  # override in .env

    # Database
    database_url: str

    # Billing accounts: "BA" + zero-padded encounter id
    account_number_prefix: str = "BA"
    account_number_width: int = 6

    # Lab turnaround (hours) per priority; urgent/fast also cap a test's own turnaround
    lab_turnaround_hours: dict[str, int] = Field(
        default_factory=lambda: {"urgent": 2, "fast": 6, "normal": 24}
    )

    # Pydantic v2 style config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings instance so the .env is parsed once.
    """
    return Settings()
