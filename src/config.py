from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration, read from the environment (or a ``.env`` file).

    Field names match environment variables case-insensitively, so
    ``MAX_KEY_PROBES`` sets ``max_key_probes``.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str
    redis_url: str
    jwt_secret: str

    db_pool_min_size: int = 5
    db_pool_max_size: int = 20
    db_timeout_seconds: float = 5.0
    cache_timeout_seconds: float = 1.0

    cache_expiry_seconds: int = 3600
    key_start_probe: int = 0
    max_key_probes: int = 16
    max_create_attempts: int = 3

    access_token_ttl_seconds: int = 3600
    refresh_token_ttl_days: int = 60

    log_level: str = "INFO"
    log_file: Optional[str] = None
