"""
Atelier Store - Storage Layout Manager

Manages the data directory layout:
- config.json        flat user settings (loraDir, wildcardDir, API keys, ...)
- characters.json    character profiles
- lists.json         favorite list names
- lora_meta.json     per-path LoRA metadata overlay
- situations.json    situation prompt templates
- uploads/           uploaded character images
- .atelier.lock      init lock

The LoRA and wildcard directories themselves live wherever config.json
points; they are scanned in place and never copied here.
"""

from __future__ import annotations

import json
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Optional, Union

import filelock


class StoreError(Exception):
    """Base exception for store errors."""
    pass


class StoreLockError(StoreError):
    """Error when store lock cannot be acquired."""
    pass


class NotFoundError(StoreError):
    """Referenced id or path does not exist."""
    pass


class ConflictError(StoreError):
    """Destination already exists."""
    pass


class NotConfiguredError(StoreError):
    """A required directory or key has not been configured."""
    pass


class UpstreamError(StoreError):
    """A remote service call failed."""
    pass


class ReorderBusyError(StoreError):
    """Another reorder is still in progress."""
    pass


JsonDoc = Union[dict, list]


class StoreLayout:
    """
    Manages the data directory layout.

    Provides atomic JSON writes. Writes are not serialized between
    processes; concurrent writers can lose updates, but never leave a
    partial document behind.
    """

    LOCK_TIMEOUT = 30.0  # seconds

    def __init__(self, root: Optional[Path] = None):
        """
        Initialize store layout.

        Args:
            root: Data directory. Defaults to ATELIER_DATA_DIR env var
                  or ~/.atelier
        """
        if root is None:
            root = Path(os.environ.get("ATELIER_DATA_DIR", Path.home() / ".atelier"))

        self.root = Path(root).expanduser().resolve()

    # =========================================================================
    # Path Properties
    # =========================================================================

    @property
    def config_path(self) -> Path:
        """Path to config.json."""
        return self.root / "config.json"

    @property
    def characters_path(self) -> Path:
        """Path to characters.json."""
        return self.root / "characters.json"

    @property
    def lists_path(self) -> Path:
        """Path to lists.json."""
        return self.root / "lists.json"

    @property
    def lora_meta_path(self) -> Path:
        """Path to lora_meta.json."""
        return self.root / "lora_meta.json"

    @property
    def situations_path(self) -> Path:
        """Path to situations.json."""
        return self.root / "situations.json"

    @property
    def uploads_path(self) -> Path:
        """Path to uploads directory."""
        return self.root / "uploads"

    @property
    def lock_file_path(self) -> Path:
        """Path to store lock file."""
        return self.root / ".atelier.lock"

    # =========================================================================
    # Locking
    # =========================================================================

    @contextmanager
    def lock(self, timeout: Optional[float] = None) -> Generator[None, None, None]:
        """
        Acquire exclusive lock on the data directory.

        Args:
            timeout: Lock timeout in seconds. Defaults to LOCK_TIMEOUT.

        Raises:
            StoreLockError: If lock cannot be acquired.
        """
        if timeout is None:
            timeout = self.LOCK_TIMEOUT

        self.lock_file_path.parent.mkdir(parents=True, exist_ok=True)

        lock = filelock.FileLock(self.lock_file_path)
        try:
            lock.acquire(timeout=timeout)
            yield
        except filelock.Timeout:
            raise StoreLockError(
                f"Could not acquire store lock within {timeout}s. "
                "Another operation may be in progress."
            )
        finally:
            lock.release()

    # =========================================================================
    # Initialization
    # =========================================================================

    def is_initialized(self) -> bool:
        """Check if the data directory has its documents."""
        return self.root.exists() and self.characters_path.exists() and self.lists_path.exists()

    def init_store(self) -> None:
        """
        Create the data directory and any missing default documents.

        Existing documents are never overwritten.
        """
        with self.lock():
            self.root.mkdir(parents=True, exist_ok=True)
            self.uploads_path.mkdir(parents=True, exist_ok=True)
            defaults = [
                (self.characters_path, []),
                (self.lists_path, []),
                (self.situations_path, {}),
                (self.lora_meta_path, {}),
            ]
            for path, default in defaults:
                if not path.exists():
                    self.write_json(path, default)

    # =========================================================================
    # JSON I/O (Atomic)
    # =========================================================================

    def write_json(self, path: Path, data: JsonDoc) -> None:
        """
        Write JSON file atomically.

        Uses write-to-temp-then-rename pattern for atomicity.
        """
        path.parent.mkdir(parents=True, exist_ok=True)

        tmp_path = path.with_suffix(".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.write("\n")

            tmp_path.replace(path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

    def read_json(self, path: Path, default: Any = None) -> Any:
        """Read JSON file, returning ``default`` when it does not exist."""
        if not path.exists():
            return default
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
