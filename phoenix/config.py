"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

SQLITE_NAME = "Phoenix.sqlite"
KEY_FILE_NAME = "private.key"


class Settings(BaseSettings):
    """Phoenix application settings."""

    model_config = SettingsConfigDict(
        env_prefix="PHOENIX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    debug: bool = False

    # Storage
    data_dir: Path = Path("./data")
    database_url: str | None = None
    key_file: Path | None = None

    # Remote endpoint
    remote_verify_tls: bool = False
    remote_timeout_seconds: float = Field(default=30.0, gt=0)
    allow_insecure_http: bool = True

    # Sync
    sync_log_limit: int = Field(default=10, ge=1, le=100)
    sync_on_startup: bool = True
    sync_after_mutation: bool = True
    sync_lease_seconds: int = Field(default=900, ge=30)

    def resolved_database_url(self) -> str:
        """Return the configured database URL, defaulting to a SQLite file in data_dir."""
        if self.database_url:
            return self.database_url
        return f"sqlite+aiosqlite:///{self.data_dir / SQLITE_NAME}"

    def resolved_key_file(self) -> Path:
        """Return the encryption key file path, defaulting to data_dir."""
        if self.key_file is not None:
            return self.key_file
        return self.data_dir / KEY_FILE_NAME

    def validate_runtime(self) -> None:
        """Validate settings that can only be checked against the filesystem."""
        violations: list[str] = []
        if self.data_dir.exists() and not self.data_dir.is_dir():
            violations.append(f"DATA_DIR exists but is not a directory: {self.data_dir}")
        key_file = self.resolved_key_file()
        if key_file.exists() and not key_file.is_file():
            violations.append(f"KEY_FILE exists but is not a file: {key_file}")

        if violations:
            joined = "; ".join(violations)
            raise ValueError(f"Invalid configuration: {joined}")
