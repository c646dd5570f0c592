"""
Atelier Store - User Settings

Flat settings document (data/config.json) edited from the settings page.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from .layout import NotConfiguredError, StoreLayout
from .models import AppConfig

logger = logging.getLogger(__name__)


class ConfigService:
    """
    Read and shallow-merge config.json.

    Args:
        layout: Store layout manager
        defaults: Values used when the document lacks them (e.g. API keys
                  from the environment)
    """

    def __init__(self, layout: StoreLayout, defaults: Optional[Dict[str, Any]] = None):
        self.layout = layout
        self.defaults = {k: v for k, v in (defaults or {}).items() if v}

    def get(self) -> AppConfig:
        data = self.layout.read_json(self.layout.config_path, default={}) or {}
        merged = {**self.defaults, **{k: v for k, v in data.items() if v not in (None, "")}}
        return AppConfig.model_validate(merged)

    def raw(self) -> Dict[str, Any]:
        """Stored document without defaults applied."""
        data = self.layout.read_json(self.layout.config_path, default={})
        return data if isinstance(data, dict) else {}

    def update(self, patch: Dict[str, Any]) -> AppConfig:
        """Shallow-merge ``patch`` into config.json and return the result."""
        data = self.raw()
        data.update(patch)
        AppConfig.model_validate(data)
        self.layout.write_json(self.layout.config_path, data)
        logger.info("[config] Updated keys: %s", ", ".join(sorted(patch)) or "-")
        return self.get()

    # =========================================================================
    # Directories
    # =========================================================================

    def lora_root(self) -> Optional[Path]:
        """Configured LoRA directory, or None if unset or missing."""
        lora_dir = self.get().lora_dir
        if not lora_dir:
            return None
        path = Path(lora_dir).expanduser()
        return path if path.is_dir() else None

    def require_lora_root(self) -> Path:
        root = self.lora_root()
        if root is None:
            raise NotConfiguredError("LoRA directory not configured")
        return root

    def wildcard_root(self) -> Optional[Path]:
        wildcard_dir = self.get().wildcard_dir
        if not wildcard_dir:
            return None
        path = Path(wildcard_dir).expanduser()
        return path if path.is_dir() else None

    def require_wildcard_root(self) -> Path:
        root = self.wildcard_root()
        if root is None:
            raise NotConfiguredError("Wildcard directory not configured")
        return root
