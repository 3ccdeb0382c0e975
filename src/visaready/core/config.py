"""
Application settings loaded from the environment and an optional .env file.
"""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""
    model_config = SettingsConfigDict(env_prefix="VISAREADY_", env_file=".env", extra="ignore")

    app_name: str = "VisaReady"
    version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    structured_logging: bool = True
    allowed_hosts: List[str] = ["*"]
    cors_origins: List[str] = ["*"]

    # Server-side sessions; 0 disables expiry
    session_ttl_seconds: int = 24 * 60 * 60

    # Client workflow
    api_base_url: str = "http://localhost:8000"
    api_timeout_seconds: float = 30.0
    state_file: str = ".visaready/state.json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
