"""
Path Utilities

Helpers for comparing and resolving asset paths.

Asset paths are POSIX-style and relative to a configured root directory.
Metadata written on Windows may carry backslashes, and user input may differ
in case, so every lookup goes through ``path_key`` rather than raw equality.
"""

import os
import re
from pathlib import Path
from typing import Optional, Union


MODEL_EXTENSIONS = (".safetensors", ".pt", ".ckpt")

# Trailing " (1)", "(2)" counters added by browsers and file managers
_COUNTER_SUFFIX = re.compile(r"\s*\(\d+\)$")
_MODEL_EXT_PATTERN = re.compile(r"\.(safetensors|pt|ckpt)$", re.IGNORECASE)


class PathTraversalError(ValueError):
    """Raised when a computed path escapes its root directory."""
    pass


def normalize_path(path: str) -> str:
    """Convert backslashes to forward slashes."""
    return (path or "").replace("\\", "/")


def path_key(path: str) -> str:
    """
    Comparison key for a relative path.

    Separator style, case and surrounding slashes are ignored.
    """
    return normalize_path(path).strip("/").lower()


def is_same_path(a: Optional[str], b: Optional[str]) -> bool:
    """Check whether two relative paths point at the same entry."""
    if not a or not b:
        return False
    return path_key(a) == path_key(b)


def join_rel(parent: str, name: str) -> str:
    """Join a relative parent path and a name into a normalized path."""
    parent = normalize_path(parent).strip("/")
    return f"{parent}/{name}" if parent else name


def parent_of(path: str) -> str:
    """Parent of a relative path, ``""`` for top-level entries."""
    norm = normalize_path(path).rstrip("/")
    if "/" not in norm:
        return ""
    return norm.rsplit("/", 1)[0]


def basename_of(path: str) -> str:
    """Last segment of a relative path."""
    return normalize_path(path).rstrip("/").rsplit("/", 1)[-1]


def stem_of(name: str) -> str:
    """Filename without its last extension (``a.b.png`` -> ``a.b``)."""
    return os.path.splitext(name)[0]


def strip_model_extension(name: str) -> str:
    """Remove a model-weight extension, leaving other names untouched."""
    return _MODEL_EXT_PATTERN.sub("", name)


def strip_counter_suffix(name: str) -> str:
    """Remove a trailing ``(n)`` copy counter."""
    return _COUNTER_SUFFIX.sub("", name)


def is_model_file(name: str) -> bool:
    """Check if a filename has a recognized model-weight extension."""
    return name.lower().endswith(MODEL_EXTENSIONS)


def format_size(size_bytes: Optional[int]) -> str:
    """
    Format a byte count for display.

    Returns an empty string for 0 or None, otherwise one decimal place
    with a 1024-based unit (``1536`` -> ``1.5KB``).
    """
    if not size_bytes:
        return ""
    units = ["B", "KB", "MB", "GB", "TB"]
    size = float(size_bytes)
    unit_idx = 0
    while size >= 1024 and unit_idx < len(units) - 1:
        size /= 1024
        unit_idx += 1
    return f"{size:.1f}{units[unit_idx]}"


def validate_segment(name: str) -> str:
    """Validate a single path segment supplied by a user."""
    if not name or not name.strip():
        raise ValueError("Name cannot be empty")
    if "/" in name or "\\" in name:
        raise ValueError("Name cannot contain path separators")
    if name in (".", ".."):
        raise ValueError("Name cannot be a relative reference")
    if "\x00" in name:
        raise ValueError("Name cannot contain null bytes")
    return name


def _inside(root_str: str, full: str) -> bool:
    root_cmp = os.path.normcase(root_str).lower().rstrip(os.sep)
    full_cmp = os.path.normcase(full).lower()
    return full_cmp == root_cmp or full_cmp.startswith(root_cmp + os.sep)


def resolve_within(root: Union[str, Path], rel_path: str = "") -> Path:
    """
    Resolve ``rel_path`` against ``root`` and make sure it stays inside.

    The lexical check runs first and touches nothing on disk, so ``..``
    traversal is rejected before any filesystem call. A second check on the
    real paths catches symlinks pointing out of the root. Comparison is
    case-insensitive with a separator boundary, so ``/loras2`` is not
    accepted under ``/loras``.

    Raises:
        PathTraversalError: If the resolved path escapes the root.
    """
    root_str = os.path.abspath(str(root))
    rel = normalize_path(rel_path).lstrip("/")
    if re.match(r"^[A-Za-z]:", rel):
        raise PathTraversalError(f"Absolute path not allowed: {rel_path}")

    full = os.path.normpath(os.path.join(root_str, *rel.split("/"))) if rel else root_str
    if not _inside(root_str, full):
        raise PathTraversalError(f"Path outside of root directory: {rel_path}")

    if not _inside(os.path.realpath(root_str), os.path.realpath(full)):
        raise PathTraversalError(f"Path resolves outside of root directory: {rel_path}")

    return Path(full)


def relative_to_root(root: Union[str, Path], full_path: Union[str, Path]) -> str:
    """Relative POSIX path of ``full_path`` under ``root``."""
    rel = os.path.relpath(str(full_path), os.path.abspath(str(root)))
    return "" if rel == "." else normalize_path(rel)
