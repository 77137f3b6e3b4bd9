"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Labfiles application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    debug: bool = False
    expose_docs: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///data/db/main.db"

    # Raw data directory: base path comes from the environment, the suffix is fixed
    raw_data_base_path: Path = Path("./data")
    raw_data_relative_path: str = "001shared/saw-rfid-project/raw_data/test"
    watched_prefix: str = "test/"

    # Notes
    notes_dir: Path = Path("./notes")

    # Uploads
    max_upload_size: int = Field(default=100 * 1024 * 1024, ge=1)

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)

    # CORS
    cors_origins: list[str] = Field(default_factory=list)
    trusted_hosts: list[str] = Field(default_factory=list)

    @property
    def raw_data_dir(self) -> Path:
        """Full path of the watched raw data directory."""
        return self.raw_data_base_path / self.raw_data_relative_path

    def validate_runtime(self) -> None:
        """Validate settings that cannot be expressed as field constraints."""
        violations: list[str] = []
        if not self.watched_prefix or not self.watched_prefix.endswith("/"):
            violations.append("WATCHED_PREFIX must be a non-empty path ending with '/'")
        if self.watched_prefix.startswith("/"):
            violations.append("WATCHED_PREFIX must be relative")

        if violations:
            joined = "; ".join(violations)
            raise ValueError(f"Invalid configuration: {joined}")
