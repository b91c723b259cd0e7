from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_env: str = "local"
    api_v1_prefix: str = "/api/v1"

    # Database (remote row store)
    database_url: str = "sqlite:///./medrecords.db"

    # Redis (device-local cache)
    redis_url: str | None = None

    # Profile/sharing data: remote store with local-cache fallback when True,
    # local cache only when False.
    use_remote_profiles: bool = True

    # Bounded retry for required top-level queries
    backend_retry_attempts: int = 3
    backend_retry_delay_seconds: float = 0.2

    log_level: str = "INFO"

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
