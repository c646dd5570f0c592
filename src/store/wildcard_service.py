"""
Atelier Store - Wildcards

Plain-text wildcard files (one option per line) under the configured
wildcard directory. Only ``.txt`` files are listed.
"""

from __future__ import annotations

import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Union

from ..utils.paths import join_rel, normalize_path, resolve_within, validate_segment
from .layout import ConflictError, NotFoundError

logger = logging.getLogger(__name__)

WILDCARD_EXTENSION = ".txt"


class WildcardService:
    """
    Read/write access to wildcard files.

    Args:
        root: Configured wildcard directory
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def list_files(self) -> List[Dict[str, Any]]:
        """Tree of directories and .txt files, sorted by name."""
        if not self.root.is_dir():
            return []
        return self._scan(self.root, "")

    def _scan(self, directory: Path, rel_dir: str) -> List[Dict[str, Any]]:
        try:
            entries = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as e:
            logger.warning("[wildcards] Cannot read directory %s: %s", directory, e)
            return []

        nodes: List[Dict[str, Any]] = []
        for entry in entries:
            rel = join_rel(rel_dir, entry.name)
            try:
                if entry.is_dir():
                    nodes.append({
                        "type": "directory",
                        "name": entry.name,
                        "path": rel,
                        "children": self._scan(entry, rel),
                    })
                elif entry.suffix.lower() == WILDCARD_EXTENSION:
                    stat = entry.stat()
                    nodes.append({
                        "type": "file",
                        "name": entry.name,
                        "path": rel,
                        "size": stat.st_size,
                        "mtime": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
                    })
            except OSError as e:
                logger.warning("[wildcards] Skipping %s: %s", entry, e)
        return nodes

    def read(self, path: str) -> str:
        full = resolve_within(self.root, path)
        if not full.is_file():
            raise NotFoundError(f"Wildcard not found: {path}")
        return full.read_text(encoding="utf-8")

    def write(self, path: str, content: str) -> None:
        full = resolve_within(self.root, path)
        if not normalize_path(path).strip("/"):
            raise ValueError("Missing path")
        full.parent.mkdir(parents=True, exist_ok=True)
        full.write_text(content, encoding="utf-8")

    def create(self, parent_path: str, name: str) -> str:
        """
        Create an empty wildcard file, appending .txt if missing.

        Returns:
            Relative path of the new file.
        """
        validate_segment(name)
        if not name.lower().endswith(WILDCARD_EXTENSION):
            name += WILDCARD_EXTENSION
        rel = join_rel(parent_path, name)
        full = resolve_within(self.root, rel)
        if full.exists():
            raise ConflictError("File already exists")
        full.parent.mkdir(parents=True, exist_ok=True)
        full.write_text("", encoding="utf-8")
        logger.info("[wildcards] Created %s", rel)
        return rel

    def delete(self, path: str) -> bool:
        """Delete a file or directory. Returns False if nothing was there."""
        if not normalize_path(path).strip("/"):
            raise ConflictError("Cannot delete the wildcard root")
        full = resolve_within(self.root, path)
        if not full.exists():
            return False
        if full.is_dir():
            shutil.rmtree(full)
        else:
            full.unlink()
        logger.info("[wildcards] Deleted %s", path)
        return True

    def append_lines(self, path: str, lines: List[str]) -> int:
        """Append lines to a wildcard file. Returns number appended."""
        lines = [line.strip() for line in lines if line and line.strip()]
        if not lines:
            return 0
        current = self.read(path)
        prefix = "" if not current or current.endswith("\n") else "\n"
        self.write(path, current + prefix + "\n".join(lines) + "\n")
        return len(lines)
