"""
Atelier Store - Uploads

Stores uploaded images: generic character images in data/uploads/, LoRA
previews next to the model file, and per-tag example images in a hidden
.tag_images/ folder beside the LoRA.
"""

from __future__ import annotations

import hashlib
import logging
import os
import uuid
from pathlib import Path
from typing import Optional, Union

from ..utils.paths import (
    PathTraversalError,
    basename_of,
    join_rel,
    parent_of,
    relative_to_root,
    resolve_within,
    stem_of,
)
from .layout import NotFoundError, StoreLayout
from .meta_store import MetaStore

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_EXT = ".png"
TAG_IMAGES_DIR = ".tag_images"
IMAGE_FALLBACK_EXTENSIONS = (".png", ".jpg", ".jpeg", ".webp", ".gif", ".mp4")


def _image_ext(filename: Optional[str]) -> str:
    ext = os.path.splitext(filename or "")[1].lower()
    return ext or DEFAULT_IMAGE_EXT


def tag_image_name(lora_stem: str, tag: str, ext: str) -> str:
    """Short, filesystem-safe name for a tag image."""
    digest = hashlib.md5(tag.encode("utf-8")).hexdigest()[:12]
    return f"{lora_stem}_{digest}{ext}"


class UploadService:
    """
    Writes uploaded image bytes to their destinations.

    Args:
        layout: Store layout manager (for data/uploads)
        meta_store: LoRA metadata store (tag image references)
    """

    def __init__(self, layout: StoreLayout, meta_store: MetaStore):
        self.layout = layout
        self.meta_store = meta_store

    def save_upload(self, content: bytes, filename: Optional[str]) -> str:
        """
        Store a generic image under a random name.

        Returns:
            Public URL (``/uploads/<file>``).
        """
        ext = os.path.splitext(filename or "")[1].lower()
        name = f"{uuid.uuid4()}{ext}"
        self.layout.uploads_path.mkdir(parents=True, exist_ok=True)
        (self.layout.uploads_path / name).write_bytes(content)
        logger.info("[upload] Stored %s (%d bytes)", name, len(content))
        return f"/uploads/{name}"

    def _lora_file(self, root: Path, lora_path: str) -> Path:
        full = resolve_within(root, lora_path)
        if not full.is_file():
            raise NotFoundError(f"LoRA file not found: {lora_path}")
        return full

    def save_preview(self, root: Path, lora_path: str, content: bytes, filename: Optional[str]) -> str:
        """
        Store a preview image next to a LoRA as ``<stem><ext>``.

        Returns:
            Relative preview path.
        """
        full = self._lora_file(root, lora_path)
        target = full.parent / f"{stem_of(full.name)}{_image_ext(filename)}"
        target.write_bytes(content)
        rel = relative_to_root(root, target)
        logger.info("[upload] Preview for %s -> %s", lora_path, rel)
        return rel

    def save_tag_image(
        self,
        root: Path,
        lora_path: str,
        tag: str,
        content: bytes,
        filename: Optional[str],
    ) -> str:
        """
        Store an example image for one trigger tag and record it in metadata.

        Returns:
            Relative image path.
        """
        if not tag:
            raise ValueError("Missing tag name")
        full = self._lora_file(root, lora_path)
        tag_dir = full.parent / TAG_IMAGES_DIR
        tag_dir.mkdir(parents=True, exist_ok=True)

        target = tag_dir / tag_image_name(stem_of(full.name), tag, _image_ext(filename))
        target.write_bytes(content)
        rel = relative_to_root(root, target)

        record = self.meta_store.get(lora_path)
        tag_images = dict(record.tag_images or {}) if record else {}
        tag_images[tag] = rel
        self.meta_store.write(lora_path, {"tagImages": tag_images})
        return rel


def resolve_image(root: Union[str, Path], rel_path: str) -> Path:
    """
    Locate an image or video under ``root``.

    If the exact file is missing, the same stem is tried with the common
    image extensions. Every candidate goes through ``resolve_within``, so a
    fallback can never land outside the root.

    Raises:
        PathTraversalError: Path (or a fallback candidate) escapes the root.
        NotFoundError: Nothing found, or the path names a directory.
    """
    full = resolve_within(root, rel_path)
    rel = relative_to_root(root, full)
    if not rel:
        raise PathTraversalError(f"Image path must name a file: {rel_path!r}")
    if full.is_dir():
        raise NotFoundError(f"Image not found: {rel_path}")
    if full.is_file():
        return full

    stem = stem_of(basename_of(rel))
    for ext in IMAGE_FALLBACK_EXTENSIONS:
        candidate = resolve_within(root, join_rel(parent_of(rel), f"{stem}{ext}"))
        if candidate.is_file():
            return candidate
    raise NotFoundError(f"Image not found: {rel_path}")
