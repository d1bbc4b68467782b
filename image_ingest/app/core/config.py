import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    host: str = Field("localhost", alias="HOST")
    port: int = Field(8000, alias="PORT")
    upload_dir: Path = Field(Path("uploads"), alias="UPLOAD_DIR")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    # Remote fetch limits
    fetch_timeout_seconds: float = Field(10.0, alias="FETCH_TIMEOUT_SECONDS")
    fetch_max_bytes: int = Field(20 * 1024 * 1024, alias="FETCH_MAX_BYTES")
    fetch_max_concurrency: int = Field(8, ge=1, alias="FETCH_MAX_CONCURRENCY")
    fetch_user_agent: str = Field("image-ingest/0.1", alias="FETCH_USER_AGENT")
    fetch_allow_private_hosts: bool = Field(False, alias="FETCH_ALLOW_PRIVATE_HOSTS")
    # Whole-batch controls
    batch_timeout_seconds: float = Field(120.0, alias="BATCH_TIMEOUT_SECONDS")
    disconnect_poll_seconds: float = Field(0.5, alias="DISCONNECT_POLL_SECONDS")
    max_name_attempts: int = Field(1000, ge=0, alias="MAX_NAME_ATTEMPTS")

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )


logger = logging.getLogger(__name__)


@lru_cache
def get_settings() -> Settings:
    try:
        settings = Settings()
    except PermissionError:
        logger.warning("Unable to read .env; continuing with environment variables only")
        settings = Settings(_env_file=None)
    return settings
