"""
Atelier Store - LoRA Metadata Store

Keeps the per-path metadata overlay in data/lora_meta.json.

Keys are relative asset paths stored with forward slashes. Lookups and
merges are tolerant of separator and case differences, so a record written
from a Windows path is found again from a POSIX one.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..utils.paths import normalize_path, path_key
from .layout import StoreLayout
from .models import MetaPatch, MetaRecord

logger = logging.getLogger(__name__)

MetaDoc = Dict[str, Dict[str, Any]]
PatchLike = Any  # MetaPatch or plain dict


def _patch_dict(patch: PatchLike) -> Dict[str, Any]:
    if isinstance(patch, MetaPatch):
        return patch.to_patch()
    return MetaPatch.model_validate(patch).to_patch()


class MetaStore:
    """
    Read/merge access to lora_meta.json.

    Every write re-reads the document, applies the change and replaces the
    file atomically through StoreLayout.write_json.
    """

    def __init__(self, layout: StoreLayout):
        self.layout = layout

    # =========================================================================
    # Reading
    # =========================================================================

    def read(self) -> MetaDoc:
        """Return the full mapping of path -> record dict."""
        data = self.layout.read_json(self.layout.lora_meta_path, default={})
        if not isinstance(data, dict):
            logger.warning("[meta] lora_meta.json is not an object, ignoring")
            return {}
        return data

    def _find_key(self, data: MetaDoc, path: str) -> Optional[str]:
        """Find the stored key equivalent to ``path``."""
        norm = normalize_path(path).strip("/")
        if norm in data:
            return norm
        key = path_key(path)
        for existing in data:
            if path_key(existing) == key:
                return existing
        return None

    def get(self, path: str) -> Optional[MetaRecord]:
        """Get the record for ``path``, or None."""
        data = self.read()
        key = self._find_key(data, path)
        if key is None:
            return None
        return MetaRecord.model_validate(data[key])

    def get_raw(self, data: MetaDoc, path: str) -> Dict[str, Any]:
        """Record dict for ``path`` within an already loaded document."""
        key = self._find_key(data, path)
        return data[key] if key is not None else {}

    # =========================================================================
    # Writing
    # =========================================================================

    def save(self, data: MetaDoc) -> None:
        """Persist a full document loaded with read()."""
        self.layout.write_json(self.layout.lora_meta_path, data)

    def _merge(self, data: MetaDoc, path: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        key = self._find_key(data, path)
        if key is None:
            key = normalize_path(path).strip("/")
            data[key] = {}
        data[key].update(patch)
        return data[key]

    def write(self, path: str, patch: PatchLike) -> MetaRecord:
        """
        Shallow-merge ``patch`` into the record at ``path``, creating it.

        Returns:
            The merged record.
        """
        data = self.read()
        record = self._merge(data, path, _patch_dict(patch))
        self.layout.write_json(self.layout.lora_meta_path, data)
        return MetaRecord.model_validate(record)

    def write_batch(self, items: Iterable[Tuple[str, PatchLike]]) -> int:
        """
        Merge many patches and persist once.

        Returns:
            Number of patches applied.
        """
        data = self.read()
        count = 0
        for path, patch in items:
            self._merge(data, path, _patch_dict(patch))
            count += 1
        if count:
            self.layout.write_json(self.layout.lora_meta_path, data)
        return count

    # =========================================================================
    # Key Maintenance
    # =========================================================================

    def rename_prefix_in(self, data: MetaDoc, old: str, new: str) -> int:
        """
        Move ``old`` and every key under ``old/`` to the ``new`` prefix.

        Operates on a loaded document without persisting it, so batch
        operations can write once.
        """
        old_key = path_key(old)
        new_norm = normalize_path(new).strip("/")
        if not old_key:
            return 0

        moves: List[Tuple[str, str]] = []
        for key in list(data):
            k = path_key(key)
            if k == old_key:
                moves.append((key, new_norm))
            elif k.startswith(old_key + "/"):
                suffix = normalize_path(key).strip("/")[len(old_key):]
                moves.append((key, new_norm + suffix))

        records = {src: data.pop(src) for src, _ in moves}
        for src, dst in moves:
            existing = self._find_key(data, dst)
            if existing is not None and existing != dst:
                data[dst] = data.pop(existing)
            data.setdefault(dst, {}).update(records[src])
        return len(moves)

    def rename_prefix(self, old: str, new: str) -> int:
        """Rename a record and all descendant records; persist. Returns keys moved."""
        data = self.read()
        moved = self.rename_prefix_in(data, old, new)
        if moved:
            self.layout.write_json(self.layout.lora_meta_path, data)
            logger.info("[meta] Renamed %d key(s): %s -> %s", moved, old, new)
        return moved

    def delete_prefix_in(self, data: MetaDoc, path: str, include_descendants: bool = True) -> int:
        key = path_key(path)
        if not key:
            return 0
        doomed = [
            k for k in data
            if path_key(k) == key or (include_descendants and path_key(k).startswith(key + "/"))
        ]
        for k in doomed:
            del data[k]
        return len(doomed)

    def delete_prefix(self, path: str, include_descendants: bool = True) -> int:
        """Remove the record at ``path`` and optionally all descendants."""
        data = self.read()
        removed = self.delete_prefix_in(data, path, include_descendants)
        if removed:
            self.layout.write_json(self.layout.lora_meta_path, data)
            logger.info("[meta] Removed %d record(s) under %s", removed, path)
        return removed

    # =========================================================================
    # Favorite List Cascades
    # =========================================================================

    def rename_list_reference(self, old: str, new: str) -> int:
        """Rename a favorite list in every record. Returns records touched."""
        data = self.read()
        touched = 0
        for record in data.values():
            lists = record.get("favoriteLists")
            if isinstance(lists, list) and old in lists:
                renamed: List[str] = []
                for name in lists:
                    value = new if name == old else name
                    if value not in renamed:
                        renamed.append(value)
                record["favoriteLists"] = renamed
                touched += 1
        if touched:
            self.layout.write_json(self.layout.lora_meta_path, data)
        return touched

    def remove_list_reference(self, name: str) -> int:
        """Remove a favorite list from every record. Returns records touched."""
        data = self.read()
        touched = 0
        for record in data.values():
            lists = record.get("favoriteLists")
            if isinstance(lists, list) and name in lists:
                record["favoriteLists"] = [n for n in lists if n != name]
                touched += 1
        if touched:
            self.layout.write_json(self.layout.lora_meta_path, data)
        return touched
