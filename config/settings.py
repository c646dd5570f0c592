"""
Atelier Configuration Module

Startup configuration for the Atelier server: data directory, bind
address, API keys and fallback directories. Values come from the
environment; user-editable settings live in the store's config.json.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass
class ServerConfig:
    """HTTP server bind settings."""
    host: str = field(default_factory=lambda: os.environ.get("ATELIER_HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: _env_int("ATELIER_PORT", 8000))
    log_level: str = field(default_factory=lambda: os.environ.get("ATELIER_LOG_LEVEL", "INFO").upper())
    cors_origins: tuple = (
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
    )


@dataclass
class APIConfig:
    """API configuration for external services."""
    civitai_token: Optional[str] = field(
        default_factory=lambda: os.environ.get("CIVITAI_API_TOKEN") or os.environ.get("CIVITAI_API_KEY")
    )
    gemini_api_key: Optional[str] = field(
        default_factory=lambda: os.environ.get("GEMINI_API_KEY")
    )


@dataclass
class AtelierConfig:
    """Main Atelier configuration container."""
    server: ServerConfig = field(default_factory=ServerConfig)
    api: APIConfig = field(default_factory=APIConfig)

    # Atelier data path (characters.json, lora_meta.json, uploads/, ...)
    data_path: Path = field(
        default_factory=lambda: Path(
            os.environ.get("ATELIER_DATA_DIR", str(Path.home() / ".atelier"))
        ).expanduser()
    )

    # Used until the user picks directories in the settings page
    lora_dir: Optional[str] = field(default_factory=lambda: os.environ.get("ATELIER_LORA_DIR"))
    wildcard_dir: Optional[str] = field(default_factory=lambda: os.environ.get("ATELIER_WILDCARD_DIR"))

    @property
    def uploads_path(self) -> Path:
        return self.data_path / "uploads"

    def store_defaults(self) -> Dict[str, Any]:
        """Fallback values for keys missing from the store's config.json."""
        return {
            "loraDir": self.lora_dir,
            "wildcardDir": self.wildcard_dir,
            "geminiApiKey": self.api.gemini_api_key,
        }

    def ensure_directories(self) -> None:
        """Create all necessary directories."""
        for directory in (self.data_path, self.uploads_path):
            directory.mkdir(parents=True, exist_ok=True)

    @classmethod
    def load(cls) -> 'AtelierConfig':
        """Build configuration from the environment."""
        config = cls()
        config.ensure_directories()
        return config


# Global configuration instance
_config: Optional[AtelierConfig] = None


def get_config() -> AtelierConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = AtelierConfig.load()
    return _config


def reset_config() -> None:
    """Reset global configuration (useful for testing)."""
    global _config
    _config = None
