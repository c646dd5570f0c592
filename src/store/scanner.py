"""
Atelier Store - LoRA Tree Scanner

Walks the configured LoRA directory and builds the asset tree returned by
GET /loras/files. Nothing is cached; every call re-reads the filesystem.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..utils.paths import is_model_file, join_rel, normalize_path, path_key, stem_of
from .generation import detect_generation
from .models import AssetNode, DirectoryNode, FileNode

logger = logging.getLogger(__name__)

PREVIEW_SUFFIXES = (".png", ".jpg", ".jpeg", ".webp", ".gif", ".mp4", ".preview.png")
SIDECAR_SUFFIXES = (".civitai.info", ".info")
CIVITAI_MODEL_URL = "https://civitai.com/models/{model_id}"


def find_sidecar(directory: Path, stem: str) -> Optional[Path]:
    """First existing sidecar info file for ``stem``."""
    for suffix in SIDECAR_SUFFIXES:
        candidate = directory / f"{stem}{suffix}"
        if candidate.is_file():
            return candidate
    return None


def read_sidecar(path: Path) -> Optional[Dict[str, Any]]:
    """Parse a sidecar info file. Returns None if unreadable or not an object."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("[scan] Bad sidecar %s: %s", path, e)
        return None
    return data if isinstance(data, dict) else None


def sidecar_images(info: Dict[str, Any]) -> List[Any]:
    """Raw image entries of the first model version, or top-level images."""
    versions = info.get("modelVersions")
    if isinstance(versions, list) and versions and isinstance(versions[0], dict):
        images = versions[0].get("images")
        if images:
            return images if isinstance(images, list) else []
    images = info.get("images")
    return images if isinstance(images, list) else []


def image_urls(images: List[Any]) -> List[str]:
    """Accept bare URL strings or objects with ``url``; drop empties."""
    urls: List[str] = []
    for img in images:
        url = img if isinstance(img, str) else (img.get("url") if isinstance(img, dict) else None)
        if url:
            urls.append(url)
    return urls


def _find_preview(stem: str, name: str, siblings: List[str]) -> Optional[str]:
    lowered = {s.lower(): s for s in reversed(siblings) if s != name}
    stem_lower = stem.lower()
    for suffix in PREVIEW_SUFFIXES:
        match = lowered.get(stem_lower + suffix)
        if match:
            return match
    return None


class LoraScanner:
    """
    Builds the asset tree for a LoRA root directory.

    Args:
        root: Configured LoRA directory
        meta: Current lora_meta.json mapping (cached generation, images, url)
    """

    def __init__(self, root: Path, meta: Optional[Dict[str, Dict[str, Any]]] = None):
        self.root = Path(root)
        self._meta = {path_key(k): v for k, v in (meta or {}).items() if isinstance(v, dict)}

    def scan(self) -> List[AssetNode]:
        """Scan the whole root. Returns [] if it does not exist."""
        if not self.root.is_dir():
            return []
        return self._scan_dir(self.root, "")

    def _scan_dir(self, directory: Path, rel_dir: str) -> List[AssetNode]:
        try:
            entries = sorted(os.listdir(directory))
        except OSError as e:
            logger.warning("[scan] Cannot read directory %s: %s", directory, e)
            return []

        nodes: List[AssetNode] = []
        for name in entries:
            full = directory / name
            rel = join_rel(rel_dir, name)
            try:
                if full.is_dir():
                    if name.startswith("."):
                        continue
                    nodes.append(DirectoryNode(
                        name=name,
                        path=rel,
                        children=self._scan_dir(full, rel),
                    ))
                elif is_model_file(name):
                    nodes.append(self._file_node(full, rel, name, rel_dir, entries))
            except OSError as e:
                logger.warning("[scan] Skipping %s: %s", full, e)
        return nodes

    def _file_node(self, full: Path, rel: str, name: str, rel_dir: str, siblings: List[str]) -> FileNode:
        stat = full.stat()
        stem = stem_of(name)
        record = self._meta.get(path_key(rel), {})

        preview = _find_preview(stem, name, siblings)

        info: Optional[Dict[str, Any]] = None
        sidecar = find_sidecar(full.parent, stem)
        if sidecar is not None:
            info = read_sidecar(sidecar)

        model_id = None
        trained_words: List[str] = []
        images: List[str] = []
        if info:
            raw_id = info.get("modelId") or info.get("id")
            try:
                model_id = int(raw_id) if raw_id else None
            except (TypeError, ValueError):
                model_id = None
            words = info.get("trainedWords")
            if isinstance(words, list):
                trained_words = [str(w) for w in words]
            images = image_urls(sidecar_images(info))

        if not images:
            cached_images = record.get("civitaiImages")
            images = list(cached_images) if isinstance(cached_images, list) else []

        civitai_url = CIVITAI_MODEL_URL.format(model_id=model_id) if model_id else record.get("civitaiUrl")

        return FileNode(
            name=name,
            path=rel,
            size=stat.st_size,
            mtime=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            preview_path=join_rel(rel_dir, preview) if preview else None,
            model_id=model_id,
            trained_words=trained_words,
            generation=detect_generation(full, record.get("generation"), info),
            civitai_images=images,
            civitai_url=civitai_url,
        )


def scan_tree(root: Path, meta: Optional[Dict[str, Dict[str, Any]]] = None) -> List[AssetNode]:
    """Convenience wrapper around LoraScanner.scan()."""
    return LoraScanner(root, meta).scan()


def flatten_files(nodes: List[AssetNode]) -> List[FileNode]:
    """Depth-first list of every file node in the tree."""
    files: List[FileNode] = []
    for node in nodes:
        if isinstance(node, DirectoryNode):
            files.extend(flatten_files(node.children))
        else:
            files.append(node)
    return files


def find_node(nodes: List[AssetNode], path: str) -> Optional[AssetNode]:
    """Find a node by path (separator/case tolerant)."""
    key = path_key(path)
    for node in nodes:
        if path_key(node.path) == key:
            return node
        if isinstance(node, DirectoryNode) and key.startswith(path_key(node.path) + "/"):
            return find_node(node.children, path)
    return None


def children_of(nodes: List[AssetNode], parent: str) -> List[AssetNode]:
    """Direct children of ``parent`` (``""`` for the root)."""
    if not normalize_path(parent).strip("/"):
        return nodes
    node = find_node(nodes, parent)
    return node.children if isinstance(node, DirectoryNode) else []
