"""Environment-based configuration for the assignment API service."""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


class Settings:
    """API configuration loaded from environment variables."""

    def __init__(self):
        self.host = os.getenv("LA_API_HOST", "0.0.0.0")
        self.port = int(os.getenv("LA_API_PORT", "8000"))
        self.data_dir = Path(os.getenv(
            "LA_DATA_DIR",
            str(Path.home() / ".lead-assignment"),
        )).expanduser()
        self.debug = os.getenv("LA_ENGINE_ENV", "production") != "production"

        # Seconds an assignment may take before it is reported unassigned
        timeout = os.getenv("LA_ASSIGN_TIMEOUT", "")
        self.assign_timeout = float(timeout) if timeout else None

        self.allowed_origins = [
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ]


_settings = None


def _get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings():
    """Drop cached settings so the next access re-reads the environment."""
    global _settings
    _settings = None


class _SettingsProxy:
    """Lazy proxy so settings aren't loaded until first access."""

    def __getattr__(self, name):
        return getattr(_get_settings(), name)


settings = _SettingsProxy()
