"""Configuration management for the HookCron service."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="HOOKCRON_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Job storage
    jobs_file: str = "config.yaml"

    # Management API
    host: str = "0.0.0.0"
    port: int = Field(8080, ge=1, le=65535)

    # Execution
    default_webhook_timeout: float = Field(30.0, gt=0)
    max_concurrent_executions: int = Field(0, ge=0)  # 0 = unbounded

    # Logging Configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    @property
    def jobs_path(self) -> Path:
        return Path(self.jobs_file)

    def with_addr(self, addr: str) -> "Settings":
        """Copy of these settings listening on *addr* (``host:port`` or ``:port``)."""
        host, _, port = addr.rpartition(":")
        if not port.isdigit():
            raise ValueError(f"invalid address {addr!r}, expected host:port")
        return self.model_copy(update={"host": host or "0.0.0.0", "port": int(port)})


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
