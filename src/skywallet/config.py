"""
Configuration management using pydantic-settings.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from skywallet.constants import BALANCE_REFRESH_DELAY, NOTE_STORE_RETRIES, NOTE_STORE_RETRY_DELAY


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, env_prefix="SKYWALLET_"
    )

    node_url: str = "http://127.0.0.1:6420"
    request_timeout: float = Field(default=30.0, gt=0)

    hw_enabled: bool = False
    hw_daemon_url: str = "http://127.0.0.1:9510/api/v1"
    hw_timeout: float = Field(default=120.0, gt=0)
    wallets_data_path: Path = Path.home() / ".skywallet" / "hw-wallets.json"

    note_retry_attempts: int = Field(default=NOTE_STORE_RETRIES, ge=1)
    note_retry_delay: float = Field(default=NOTE_STORE_RETRY_DELAY, ge=0)
    balance_refresh_delay: float = Field(default=BALANCE_REFRESH_DELAY, ge=0)

    log_level: str = "INFO"


def get_settings() -> Settings:
    return Settings()
