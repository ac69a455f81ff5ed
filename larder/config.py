"""Runtime configuration — env-driven.

Centralized settings using pydantic-settings. Values are read from a
``.env`` file in the working directory and from ``LARDER_*`` environment
variables.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LarderSettings(BaseSettings):
    """Settings shared by the installer, the store, and the CLI.

    Examples
    --------
    Override via environment::

        export LARDER_HOME=/var/cache/larder
        export LARDER_LOG_LEVEL=DEBUG
        export LARDER_DOWNLOAD_RETRIES=5

    Or via .env file::

        LARDER_HTTP_TIMEOUT=10
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="LARDER_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"

    # Storage paths
    home: Path = Path.home() / ".larder"
    store_path: Path | None = None

    # Project files
    manifest_name: str = "larder.toml"
    lockfile_name: str = "larder.lock"

    # Network
    http_timeout: float = 30.0
    download_retries: int = 2
    user_agent: str = "larder/0.1"

    @model_validator(mode="after")
    def _default_store_path(self) -> LarderSettings:
        if self.store_path is None:
            self.store_path = self.home / "cookbooks"
        return self

    @property
    def stash_path(self) -> Path:
        """Scratch directory for downloads awaiting import."""
        return self.home / "stash"


# Module-level singleton: import as `from larder.config import config`
config = LarderSettings()
