"""
Atelier Store - Custom Order

Manual ordering of LoRA files within one folder. The order lives in the
``order`` field of each file's metadata record; the scanned tree itself is
never reordered.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional, Sequence

from ..utils.paths import parent_of, path_key
from .layout import ReorderBusyError
from .meta_store import MetaStore
from .models import AssetNode, DirectoryNode, FileNode, ReorderResult, SortMode
from .scanner import children_of

logger = logging.getLogger(__name__)

UNORDERED = 9999


def _order_lookup(meta: Dict[str, Dict[str, Any]]) -> Dict[str, int]:
    orders: Dict[str, int] = {}
    for key, record in meta.items():
        if isinstance(record, dict) and isinstance(record.get("order"), int):
            orders[path_key(key)] = record["order"]
    return orders


def baseline(files: Sequence[FileNode], meta: Dict[str, Dict[str, Any]]) -> List[FileNode]:
    """Files sorted by stored order (unset last), then name ignoring case."""
    orders = _order_lookup(meta)
    return sorted(files, key=lambda f: (orders.get(path_key(f.path), UNORDERED), f.name.casefold()))


def sorted_view(
    nodes: Sequence[AssetNode],
    mode: SortMode,
    meta: Dict[str, Dict[str, Any]],
) -> List[AssetNode]:
    """Display order for one folder: directories first, then files."""
    dirs = sorted((n for n in nodes if isinstance(n, DirectoryNode)), key=lambda d: d.name.casefold())
    files = [n for n in nodes if isinstance(n, FileNode)]
    if mode == SortMode.CUSTOM:
        files = baseline(files, meta)
    else:
        files = sorted(files, key=lambda f: f.name.casefold())
    return [*dirs, *files]


def move_single(paths: List[str], dragged: str, target: str) -> List[str]:
    """Remove ``dragged`` and insert it at the target's index."""
    keys = [path_key(p) for p in paths]
    src = keys.index(path_key(dragged))
    dst = keys.index(path_key(target))
    result = list(paths)
    item = result.pop(src)
    result.insert(dst, item)
    return result


def move_block(paths: List[str], selected: List[str], target: str) -> List[str]:
    """
    Move the selected paths as one block to the target position.

    The block keeps its baseline order. If the target is itself selected the
    block lands before the first unselected path that followed the target.
    """
    chosen = {path_key(p) for p in selected}
    block = [p for p in paths if path_key(p) in chosen]
    remaining = [p for p in paths if path_key(p) not in chosen]
    target_key = path_key(target)

    if target_key in chosen:
        start = [path_key(p) for p in paths].index(target_key)
        anchor: Optional[str] = next(
            (p for p in paths[start + 1:] if path_key(p) not in chosen), None
        )
        insert_at = remaining.index(anchor) if anchor is not None else len(remaining)
    else:
        insert_at = [path_key(p) for p in remaining].index(target_key)

    return remaining[:insert_at] + block + remaining[insert_at:]


class ReorderEngine:
    """
    Applies drag-and-drop reorders to the metadata store.

    One reorder runs at a time per engine; an overlapping call raises
    ReorderBusyError instead of waiting.
    """

    def __init__(self, meta_store: MetaStore):
        self.meta_store = meta_store
        self._busy = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._busy.locked()

    def reorder(
        self,
        tree: List[AssetNode],
        dragged: List[str],
        target: str,
    ) -> ReorderResult:
        """
        Move ``dragged`` (one path or a selection) onto ``target``.

        Both must live in the same folder; anything else is ignored and
        reported as unchanged. The first entry of ``dragged`` is the item
        actually dragged.
        """
        if not self._busy.acquire(blocking=False):
            raise ReorderBusyError("A reorder is already in progress")
        try:
            return self._reorder(tree, dragged, target)
        finally:
            self._busy.release()

    def _reorder(self, tree: List[AssetNode], dragged: List[str], target: str) -> ReorderResult:
        if not dragged or not target:
            return ReorderResult(changed=False)

        parent = parent_of(target)
        if path_key(parent_of(dragged[0])) != path_key(parent):
            logger.debug("[reorder] Ignoring cross-folder drop %s -> %s", dragged[0], target)
            return ReorderResult(changed=False)

        meta = self.meta_store.read()
        files = [n for n in children_of(tree, parent) if isinstance(n, FileNode)]
        current = [f.path for f in baseline(files, meta)]
        keys = {path_key(p) for p in current}

        selected = [p for p in dragged if path_key(p) in keys and path_key(parent_of(p)) == path_key(parent)]
        if path_key(target) not in keys or not selected:
            return ReorderResult(changed=False, order=current)

        if len(selected) == 1:
            if path_key(selected[0]) == path_key(target):
                return ReorderResult(changed=False, order=current)
            new_order = move_single(current, selected[0], target)
        else:
            new_order = move_block(current, selected, target)

        if new_order == current:
            return ReorderResult(changed=False, order=current)

        self.meta_store.write_batch((path, {"order": index}) for index, path in enumerate(new_order))
        logger.info("[reorder] Reordered %d file(s) in '%s'", len(new_order), parent or "/")
        return ReorderResult(changed=True, order=new_order)
