"""
Atelier Store - Duplicate Detector

Groups LoRA files that look like copies of each other: same name once the
extension and a trailing "(n)" counter are stripped, and the same byte size.
File contents are not hashed, so unrelated files with a matching name and
size are reported too.
"""

from __future__ import annotations

from typing import Dict, List

from ..utils.paths import strip_counter_suffix, strip_model_extension
from .models import FileNode


def duplicate_key(node: FileNode) -> str:
    """Grouping key: normalized name plus size."""
    name = strip_counter_suffix(strip_model_extension(node.name)).strip().lower()
    return f"{name}-{node.size}"


def find_duplicates(files: List[FileNode]) -> List[List[FileNode]]:
    """
    Return groups of more than one file sharing a duplicate key.

    Groups and members keep first-seen order.
    """
    groups: Dict[str, List[FileNode]] = {}
    for node in files:
        groups.setdefault(duplicate_key(node), []).append(node)
    return [group for group in groups.values() if len(group) > 1]
