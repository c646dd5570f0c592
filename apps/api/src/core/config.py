"""
API Configuration - Proxy to main config

This module provides a unified interface to the main config system.
All settings come from config/settings.py.
"""

from pathlib import Path
from typing import Tuple

from config.settings import get_config


class Settings:
    """
    Proxy settings class that delegates to main config.

    This ensures single source of truth for all configuration.
    """

    @property
    def host(self) -> str:
        return get_config().server.host

    @property
    def port(self) -> int:
        return get_config().server.port

    @property
    def log_level(self) -> str:
        return get_config().server.log_level

    @property
    def cors_origins(self) -> Tuple[str, ...]:
        return tuple(get_config().server.cors_origins)

    @property
    def data_path(self) -> Path:
        return get_config().data_path

    @property
    def uploads_path(self) -> Path:
        return get_config().uploads_path


# Singleton instance
settings = Settings()
