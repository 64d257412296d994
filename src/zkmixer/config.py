"""Runtime configuration for the ZK-Mixer.

Values are read from the environment (prefix ``ZKMIXER_``) and an optional
``.env`` file in the working directory.
"""

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Mixer settings."""

    model_config = SettingsConfigDict(
        env_prefix="ZKMIXER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = Field(default="sqlite:///zk_mixer.db", description="SQLAlchemy URL for the ledger")
    min_deposit: int = Field(default=1, ge=1, description="Smallest accepted deposit, in base units")
    max_deposit: int = Field(default=10**24, ge=1, description="Largest accepted deposit, in base units")
    max_merkle_depth: int = Field(default=32, ge=1, le=32)
    root_history_size: int = Field(default=30, ge=1, description="Recent roots accepted per pool")
    verification_key_path: Optional[str] = Field(default=None, description="snarkjs verification key JSON")
    allow_dev_setup: bool = Field(
        default=False, description="Generate a throwaway development key when no key path is set"
    )

    jwt_secret: str = Field(default="change-me-in-production", min_length=8)
    jwt_algorithm: str = "HS256"
    admin_token_expire_hours: int = Field(default=24, ge=1)

    log_level: str = "INFO"

    @model_validator(mode="after")
    def _check_deposit_bounds(self) -> "Settings":
        if self.min_deposit > self.max_deposit:
            raise ValueError("min_deposit must not exceed max_deposit")
        return self


@lru_cache()
def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    return Settings()


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Apply the configured log level to the package logger."""
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger("zkmixer").setLevel(level)
