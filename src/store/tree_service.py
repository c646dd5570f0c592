"""
Atelier Store - Tree Mutators

Create, rename, delete and move entries in the LoRA directory while keeping
lora_meta.json keys in step with the filesystem.

Every path is resolved through resolve_within() before anything touches the
disk, so traversal attempts fail with PathTraversalError up front.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Dict, List

from ..utils.paths import (
    basename_of,
    is_model_file,
    join_rel,
    normalize_path,
    parent_of,
    path_key,
    resolve_within,
    stem_of,
    validate_segment,
)
from .layout import ConflictError, NotFoundError, StoreError
from .meta_store import MetaStore
from .models import BatchMoveResult, MoveItemResult

logger = logging.getLogger(__name__)


def _related_files(directory: Path, name: str) -> List[str]:
    """
    The file itself plus its companions named ``<stem>.*``.

    Other model files never count as companions, and neither do files that
    belong to a longer-stemmed model beside it (``m.v2.png`` stays with
    ``m.v2.safetensors`` when ``m.safetensors`` is the target).
    """
    entries = os.listdir(directory)
    prefix = stem_of(name) + "."
    other_prefixes = [
        stem_of(f) + "." for f in entries
        if is_model_file(f) and stem_of(f).startswith(prefix)
    ]

    def is_companion(f: str) -> bool:
        if f == name:
            return True
        if not f.startswith(prefix) or is_model_file(f):
            return False
        return not any(f.startswith(other) for other in other_prefixes)

    return sorted(f for f in entries if is_companion(f))



class TreeService:
    """
    Filesystem mutations for the LoRA tree.

    Args:
        root: Configured LoRA directory
        meta_store: Metadata store whose keys follow the files
    """

    def __init__(self, root: Path, meta_store: MetaStore):
        self.root = Path(root)
        self.meta_store = meta_store

    def _require_not_root(self, path: str, action: str) -> str:
        rel = normalize_path(path).strip("/")
        if not rel:
            raise ConflictError(f"Cannot {action} the root directory")
        return rel

    # =========================================================================
    # Create / Rename / Delete
    # =========================================================================

    def create_folder(self, parent_path: str, name: str) -> str:
        """
        Create ``name`` under ``parent_path``. No-op if it already exists.

        Returns:
            Relative path of the folder.
        """
        validate_segment(name)
        rel = join_rel(parent_path, name)
        full = resolve_within(self.root, rel)
        if not full.exists():
            full.mkdir(parents=True)
            logger.info("[tree] Created folder %s", rel)
        return rel

    def rename(self, path: str, new_name: str) -> str:
        """
        Rename a file or directory in place.

        Metadata for the entry and all its descendants moves with it.

        Returns:
            New relative path.

        Raises:
            NotFoundError: Source does not exist.
            ConflictError: Destination name is taken by another entry.
        """
        rel = self._require_not_root(path, "rename")
        validate_segment(new_name)
        new_rel = join_rel(parent_of(rel), new_name)

        src = resolve_within(self.root, rel)
        dst = resolve_within(self.root, new_rel)

        if not src.exists():
            raise NotFoundError(f"Not found: {path}")
        case_only = path_key(rel) == path_key(new_rel)
        if dst.exists() and not case_only:
            raise ConflictError(f"Target already exists: {new_rel}")

        os.rename(src, dst)
        self.meta_store.rename_prefix(rel, new_rel)
        logger.info("[tree] Renamed %s -> %s", rel, new_rel)
        return new_rel

    def delete(self, path: str, purge_meta: bool = True) -> int:
        """
        Delete a file (with its sidecars) or a directory tree.

        A file's own metadata record is always dropped. For directories,
        ``purge_meta`` controls whether descendant records are removed too.

        Returns:
            Number of metadata records removed.
        """
        rel = self._require_not_root(path, "delete")
        full = resolve_within(self.root, rel)
        if not full.exists():
            raise NotFoundError(f"Not found: {path}")

        if full.is_dir():
            shutil.rmtree(full)
            logger.info("[tree] Deleted directory %s", rel)
            if not purge_meta:
                return 0
            return self.meta_store.delete_prefix(rel, include_descendants=True)

        for name in _related_files(full.parent, full.name):
            (full.parent / name).unlink()
            logger.debug("[tree] Deleted %s", name)
        logger.info("[tree] Deleted file %s", rel)
        return self.meta_store.delete_prefix(rel, include_descendants=False)

    # =========================================================================
    # Move
    # =========================================================================

    def _move_one(self, source: str, dest: str, meta: Dict[str, Dict]) -> str:
        rel = self._require_not_root(source, "move")
        dest_rel = normalize_path(dest).strip("/")
        name = basename_of(rel)
        new_rel = join_rel(dest_rel, name)

        src = resolve_within(self.root, rel)
        dest_dir = resolve_within(self.root, dest_rel)
        target = resolve_within(self.root, new_rel)

        if not src.exists():
            raise NotFoundError(f"Source not found: {source}")
        if not dest_dir.is_dir():
            raise NotFoundError(f"Destination not found: {dest}")
        src_key = path_key(rel)
        dest_key = path_key(dest_rel)
        if src.is_dir() and (dest_key == src_key or dest_key.startswith(src_key + "/")):
            raise ConflictError(f"Cannot move {source} into itself")
        if target.exists():
            raise ConflictError(f"Target already exists: {new_rel}")

        if src.is_dir():
            os.rename(src, target)
        else:
            for sibling in _related_files(src.parent, src.name):
                sibling_dst = dest_dir / sibling
                if sibling_dst.exists():
                    logger.warning("[tree] Leaving %s behind, already exists at destination", sibling)
                    continue
                os.rename(src.parent / sibling, sibling_dst)

        self.meta_store.rename_prefix_in(meta, rel, new_rel)
        logger.info("[tree] Moved %s -> %s", rel, new_rel)
        return new_rel

    def move(self, source: str, dest: str) -> str:
        """
        Move a file (with sidecars) or directory into ``dest``.

        Returns:
            New relative path.
        """
        meta = self.meta_store.read()
        new_rel = self._move_one(source, dest, meta)
        self.meta_store.save(meta)
        return new_rel

    def move_batch(self, sources: List[str], dest: str) -> BatchMoveResult:
        """
        Move several entries into ``dest``.

        Each item succeeds or fails on its own; metadata is written once.
        """
        meta = self.meta_store.read()
        results: List[MoveItemResult] = []
        for source in sources:
            try:
                new_rel = self._move_one(source, dest, meta)
            except (StoreError, ValueError, OSError) as e:
                logger.warning("[tree] Move of %s failed: %s", source, e)
                results.append(MoveItemResult(source=source, success=False, error=str(e)))
                continue
            results.append(MoveItemResult(source=source, success=True, new_path=new_rel))

        moved = sum(1 for r in results if r.success)
        if moved:
            self.meta_store.save(meta)
        return BatchMoveResult(
            success=moved > 0,
            moved=moved,
            failed=len(results) - moved,
            results=results,
        )

