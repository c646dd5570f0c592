"""Configuration module for Atelier."""

from .settings import (
    get_config,
    reset_config,
    AtelierConfig,
    APIConfig,
    ServerConfig,
)

__all__ = [
    "get_config",
    "reset_config",
    "AtelierConfig",
    "APIConfig",
    "ServerConfig",
]
