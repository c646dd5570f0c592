"""
Atelier Store - Model Descriptions

Resolves the Civitai description shown for a LoRA. Sources, in order:
1. the local <stem>.civitai.info sidecar (unless refreshing)
2. the in-process DescriptionCache (unless refreshing)
3. a live Civitai lookup, which also writes the sidecar and caches the
   first version's image URLs in lora_meta.json
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import requests

from ..clients.civitai_client import CivitaiModel
from ..utils.paths import resolve_within, stem_of
from .layout import NotFoundError, UpstreamError
from .meta_store import MetaStore
from .models import ModelDescription
from .scanner import read_sidecar

logger = logging.getLogger(__name__)

LOCAL_SIDECAR_SUFFIX = ".civitai.info"
MIN_LOCAL_KEYS = 5


class DescriptionCache:
    """
    Descriptions fetched during this process, keyed by model ID.

    Entries live until the process exits; nothing is evicted.
    """

    def __init__(self):
        self._entries: Dict[str, ModelDescription] = {}
        self._lock = threading.Lock()

    def get(self, model_id: Any) -> Optional[ModelDescription]:
        with self._lock:
            return self._entries.get(str(model_id))

    def put(self, model_id: Any, description: ModelDescription) -> None:
        with self._lock:
            self._entries[str(model_id)] = description

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def _version_section(version: Dict[str, Any]) -> str:
    return f"<h4>Version: {version.get('name', '')}</h4>{version.get('description', '')}"


def combine_description(info: Dict[str, Any], all_versions: bool = True) -> str:
    """
    Model description followed by version descriptions that differ from it.

    Sections are separated by ``<hr/>``.
    """
    combined = info.get("description") or ""
    versions = info.get("modelVersions") or []
    if not all_versions:
        versions = versions[:1]
    for version in versions:
        if not isinstance(version, dict):
            continue
        text = version.get("description")
        if text and text != info.get("description"):
            combined += ("<hr/>" if combined else "") + _version_section(version)
    return combined


def _format_date(value: Optional[str]) -> str:
    if not value:
        return "Unknown"
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return value


def summary_description(version: Dict[str, Any]) -> str:
    """HTML placeholder for models published without any description."""
    words = version.get("trainedWords") or []
    parts = [
        '<div style="text-align:center;padding:1rem;">',
        "<p>Model found on Civitai, but no text description was provided.</p>",
        f"<p><strong>Base Model:</strong> {version.get('baseModel') or 'Unknown'}</p>",
        f"<p><strong>Created:</strong> {_format_date(version.get('createdAt'))}</p>",
    ]
    if words:
        parts.append(f"<p><strong>Trained Words:</strong> {', '.join(words)}</p>")
    parts.append("</div>")
    return "\n".join(parts)


class DescriptionService:
    """
    Looks up model descriptions.

    Args:
        meta_store: Metadata store receiving cached image URLs
        civitai: Client with a ``get_model(model_id) -> dict`` method
        cache: Shared description cache
    """

    def __init__(self, meta_store: MetaStore, civitai: Any, cache: DescriptionCache):
        self.meta_store = meta_store
        self.civitai = civitai
        self.cache = cache

    def _sidecar_path(self, root: Optional[Path], lora_path: Optional[str]) -> Optional[Path]:
        if root is None or not lora_path:
            return None
        full = resolve_within(root, lora_path)
        return full.parent / f"{stem_of(full.name)}{LOCAL_SIDECAR_SUFFIX}"

    def _from_local(self, sidecar: Optional[Path]) -> Optional[ModelDescription]:
        if sidecar is None or not sidecar.is_file():
            return None
        info = read_sidecar(sidecar)
        if not info or len(info) <= MIN_LOCAL_KEYS:
            return None
        model = CivitaiModel.from_api_response(info)
        return ModelDescription(
            description=combine_description(info, all_versions=False),
            is_local=True,
            images=model.preview_images,
        )

    def describe(
        self,
        model_id: int,
        root: Optional[Path] = None,
        lora_path: Optional[str] = None,
        refresh: bool = False,
    ) -> ModelDescription:
        """
        Resolve the description for ``model_id``.

        Raises:
            NotFoundError: Civitai has neither description nor images.
            UpstreamError: Civitai failed and no local sidecar exists.
        """
        sidecar = self._sidecar_path(root, lora_path)

        if not refresh:
            local = self._from_local(sidecar)
            if local is not None:
                return local
            cached = self.cache.get(model_id)
            if cached is not None:
                return cached

        try:
            info = self.civitai.get_model(model_id)
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status == 404:
                raise NotFoundError(f"Model {model_id} not found on Civitai")
            return self._fallback(sidecar, model_id, e)
        except (requests.RequestException, ValueError) as e:
            return self._fallback(sidecar, model_id, e)

        model = CivitaiModel.from_api_response(info)
        description = combine_description(info)
        versions = [v for v in info.get("modelVersions") or [] if isinstance(v, dict)]
        if not description and versions:
            description = summary_description(versions[0])

        if sidecar is not None:
            self._write_back(sidecar, lora_path, info, model)

        images = model.first_version.images if model.first_version else []
        if not description and not images:
            raise NotFoundError(f"No description for model {model_id}")

        result = ModelDescription(description=description, is_local=False, images=images)
        self.cache.put(model_id, result)
        return result

    def _write_back(self, sidecar: Path, lora_path: str, info: Dict[str, Any], model: Any) -> None:
        try:
            self.meta_store.layout.write_json(sidecar, info)
        except OSError as e:
            logger.warning("[civitai] Could not save sidecar %s: %s", sidecar, e)
        else:
            logger.info("[civitai] Saved sidecar for %s", lora_path)
        urls = [img.url for img in model.first_version.images] if model.first_version else []
        if urls:
            self.meta_store.write(lora_path, {"civitaiImages": urls})

    def _fallback(self, sidecar: Optional[Path], model_id: int, error: Exception) -> ModelDescription:
        logger.warning("[civitai] Lookup for model %s failed: %s", model_id, error)
        if sidecar is not None and sidecar.is_file():
            info = read_sidecar(sidecar)
            if info:
                return ModelDescription(
                    description=combine_description(info, all_versions=False),
                    is_local=True,
                    images=CivitaiModel.from_api_response(info).preview_images,
                )
        raise UpstreamError(f"Civitai lookup failed: {error}")
