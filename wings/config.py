"""Runtime configuration — env-driven.

Centralized config using pydantic-settings for environment variable
support.  Reads from a .env file and WINGS_* environment variables.
Non-serializable collaborators (the background executor, the logger,
deliverers) are passed to ``Wings`` directly rather than configured here.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class WingsConfig(BaseSettings):
    """Wings configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export WINGS_STORAGE_PATH=/data/wings.db
        export WINGS_LOG_LEVEL=DEBUG

    Or via .env file::

        WINGS_OUTBOX_PATH=/srv/outbox
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="WINGS_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    storage_path: Path = Path(".wings/wings.db")
    outbox_path: Path = Path(".wings/outbox")
    busy_timeout_seconds: float = 30.0

    # Logging
    log_level: str = "INFO"

    # Delivery / dispatch
    delivery_timeout_seconds: float = 120.0
    fail_orphaned_claims_on_start: bool = True
    dispatch_thread_name: str = "wings-dispatcher"

    @property
    def numeric_log_level(self) -> int:
        """``log_level`` resolved to a ``logging`` level, defaulting to INFO."""
        level = logging.getLevelName(self.log_level.upper())
        return level if isinstance(level, int) else logging.INFO


def configure_logging(config: WingsConfig) -> None:
    """Apply ``config.log_level`` to the ``wings`` logger hierarchy."""
    logging.getLogger("wings").setLevel(config.numeric_log_level)
