"""
Configuration module for RelayChat application.
Stores all server settings; every value can be overridden from the environment.
"""

import os
from typing import Dict, Any


class Config:
    """Application configuration class."""

    # Server Configuration
    DEFAULT_HOST = os.environ.get("RELAYCHAT_HOST", "localhost")
    DEFAULT_SERVER_PORT = int(os.environ.get("RELAYCHAT_PORT", "8189"))

    # Seconds the acceptor waits for a stop signal between heartbeats
    ACCEPT_TIMEOUT = float(os.environ.get("RELAYCHAT_ACCEPT_TIMEOUT", "2.0"))

    # Seconds an unauthorized session may stay connected
    AUTH_TIMEOUT = float(os.environ.get("RELAYCHAT_AUTH_TIMEOUT", "120"))

    # Seconds between two watchdog scans
    WATCHDOG_INTERVAL = float(os.environ.get("RELAYCHAT_WATCHDOG_INTERVAL", "1.0"))

    # Credential database
    SQLITE_DB_FILE = os.environ.get("RELAYCHAT_DB", "relaychat.db")

    # Logging environment (development / production / testing)
    ENV = os.environ.get("RELAYCHAT_ENV", "development")

    @classmethod
    def get_config(cls) -> Dict[str, Any]:
        """Get all configuration values as a dictionary."""
        return {
            "DEFAULT_HOST": cls.DEFAULT_HOST,
            "DEFAULT_SERVER_PORT": cls.DEFAULT_SERVER_PORT,
            "ACCEPT_TIMEOUT": cls.ACCEPT_TIMEOUT,
            "AUTH_TIMEOUT": cls.AUTH_TIMEOUT,
            "WATCHDOG_INTERVAL": cls.WATCHDOG_INTERVAL,
            "SQLITE_DB_FILE": cls.SQLITE_DB_FILE,
            "ENV": cls.ENV,
        }


# Create config instance
config = Config()
