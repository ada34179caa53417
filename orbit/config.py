"""
Orbit configuration — all environment variables in one place.

Read from environment at runtime.
"""

from __future__ import annotations

import logging
import os
import socket


class Settings:
    """Application settings from environment variables."""

    # Database (empty -> in-memory store)
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "")
    DB_POOL_MIN_SIZE: int = int(os.environ.get("DB_POOL_MIN_SIZE", "1"))
    DB_POOL_MAX_SIZE: int = int(os.environ.get("DB_POOL_MAX_SIZE", "10"))

    # Event store
    SNAPSHOT_INTERVAL: int = int(os.environ.get("ORBIT_SNAPSHOT_INTERVAL", "50"))
    MAX_BACKUP_BYTES: int = int(os.environ.get("ORBIT_MAX_BACKUP_BYTES", str(25 * 1024 * 1024)))
    APP_VERSION: str = os.environ.get("ORBIT_APP_VERSION", "0.1.0")

    # Logging
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    @property
    def DEVICE_ID(self) -> str:
        device_id = os.environ.get("ORBIT_DEVICE_ID")
        if device_id:
            return device_id
        return f"device-{socket.gethostname()}"


settings = Settings()

# Convenience exports
DATABASE_URL = settings.DATABASE_URL
SNAPSHOT_INTERVAL = settings.SNAPSHOT_INTERVAL


def require_database_url() -> str:
    if not settings.DATABASE_URL:
        raise RuntimeError("DATABASE_URL environment variable is required for the Postgres store")
    return settings.DATABASE_URL


def configure_logging() -> None:
    """Root logging setup for scripts. Library code never calls this."""
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
