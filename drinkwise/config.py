from __future__ import annotations

from functools import lru_cache

from pydantic import AliasChoices, ConfigDict, Field
from pydantic_settings import BaseSettings

GOOGLE_TOKENINFO_URL = "https://oauth2.googleapis.com/tokeninfo"


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    ``DATABASE_URL`` and ``JWT_SECRET`` have no defaults: a process started
    without them fails with a validation error before serving requests.
    """

    database_url: str = Field(
        validation_alias=AliasChoices("DATABASE_URL", "DB_URL"),
    )
    db_create_all: bool = Field(False, alias="DB_CREATE_ALL")

    jwt_secret: str = Field(alias="JWT_SECRET")
    jwt_ttl_days: int = Field(7, alias="JWT_TTL_DAYS")

    google_client_id: str | None = Field(
        None,
        validation_alias=AliasChoices("GOOGLE_CLIENT_ID", "VITE_GOOGLE_CLIENT_ID"),
    )
    google_tokeninfo_url: str = Field(GOOGLE_TOKENINFO_URL, alias="GOOGLE_TOKENINFO_URL")

    redis_url: str = Field("redis://localhost:6379", alias="REDIS_URL")
    rate_limit_per_minute: int = Field(120, alias="RATE_LIMIT_PER_MINUTE")

    port: int = Field(3001, alias="PORT")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"], alias="CORS_ORIGINS")

    inactivity_hours: float = Field(3, alias="INACTIVITY_HOURS")
    inactivity_check_seconds: int = Field(
        60,
        alias="INACTIVITY_CHECK_SECONDS",
        description="Interval of the in-process idle session sweep; 0 disables it",
    )
    stream_tick_seconds: float = Field(5, alias="STREAM_TICK_SECONDS")

    model_config = ConfigDict(
        extra="ignore",
        env_file=".env",
        case_sensitive=False,
        populate_by_name=True,
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
