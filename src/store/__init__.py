"""
Atelier Store - Main Entry Point

This module provides the main Store facade over the Atelier data directory
and the configured LoRA / wildcard directories.

Usage:
    from src.store import Store

    store = Store()
    store.init()

    # Scan the LoRA tree with its metadata overlay
    files = store.list_loras()

    # Tree mutators keep lora_meta.json keys in sync
    store.create_folder("", "Anime")
    store.move("model.safetensors", "Anime")
    store.rename("Anime", "Anime2")
"""

import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from .character_service import CharacterService
from .config_service import ConfigService
from .description_service import DescriptionCache, DescriptionService
from .duplicates import find_duplicates
from .layout import (
    ConflictError,
    NotConfiguredError,
    NotFoundError,
    ReorderBusyError,
    StoreError,
    StoreLayout,
    StoreLockError,
    UpstreamError,
)
from .meta_store import MetaStore
from .models import (
    AppConfig,
    BatchMoveResult,
    Character,
    DecompositionResult,
    FileNode,
    LoraFilesResponse,
    MetaRecord,
    ModelDescription,
    ReorderResult,
    TagAnalysis,
)
from .prompt_service import PromptService
from .reorder import ReorderEngine
from .scanner import find_node, flatten_files, scan_tree
from .tree_service import TreeService
from .upload_service import UploadService, resolve_image
from .wildcard_service import WildcardService

logger = logging.getLogger(__name__)

__version__ = "1.0.0"

__all__ = [
    # Main facade
    "Store",

    # Layout
    "StoreLayout",

    # Services
    "MetaStore",
    "ConfigService",
    "CharacterService",
    "DescriptionService",
    "DescriptionCache",
    "PromptService",
    "ReorderEngine",
    "TreeService",
    "UploadService",
    "WildcardService",

    # Errors
    "StoreError",
    "StoreLockError",
    "NotFoundError",
    "ConflictError",
    "NotConfiguredError",
    "UpstreamError",
    "ReorderBusyError",
]


class Store:
    """
    Main facade for the Atelier store.

    Services that depend on a configured directory (tree mutators,
    wildcards) are built per call, so edits to config.json apply
    immediately.
    """

    def __init__(
        self,
        root: Optional[Path] = None,
        civitai_client: Optional[Any] = None,
        ai_provider: Optional[Any] = None,
        config_defaults: Optional[Dict[str, Any]] = None,
        civitai_api_key: Optional[str] = None,
    ):
        """
        Initialize the store.

        Args:
            root: Data directory. Defaults to ATELIER_DATA_DIR env var
                  or ~/.atelier
            civitai_client: Optional CivitaiClient instance
            ai_provider: Optional AIProvider; by default a Gemini provider
                         is built from config.json on each call
            config_defaults: Fallback values for config.json keys
            civitai_api_key: Optional Civitai API key for the lazily built client
        """
        self.layout = StoreLayout(root)
        self.meta_store = MetaStore(self.layout)
        self.config_service = ConfigService(self.layout, config_defaults)
        self.character_service = CharacterService(self.layout, self.meta_store)
        self.prompt_service = PromptService(self.layout)
        self.upload_service = UploadService(self.layout, self.meta_store)
        self.reorder_engine = ReorderEngine(self.meta_store)
        self.description_cache = DescriptionCache()
        self._civitai_client = civitai_client
        self._civitai_api_key = civitai_api_key
        self._civitai_lock = threading.Lock()
        self._ai_provider = ai_provider

    # =========================================================================
    # Initialization
    # =========================================================================

    def is_initialized(self) -> bool:
        """Check if store is initialized."""
        return self.layout.is_initialized()

    def init(self) -> None:
        """Create the data directory and its default documents."""
        self.layout.init_store()

    # =========================================================================
    # Config
    # =========================================================================

    def get_config(self) -> AppConfig:
        return self.config_service.get()

    def update_config(self, patch: Dict[str, Any]) -> AppConfig:
        return self.config_service.update(patch)

    # =========================================================================
    # Collaborators
    # =========================================================================

    @property
    def civitai(self) -> Any:
        """Civitai client, created on first use."""
        if self._civitai_client is None:
            with self._civitai_lock:
                if self._civitai_client is None:
                    from ..clients.civitai_client import create_civitai_client
                    self._civitai_client = create_civitai_client(self._civitai_api_key)
        return self._civitai_client

    @property
    def description_service(self) -> DescriptionService:
        return DescriptionService(self.meta_store, self.civitai, self.description_cache)

    def ai_service(self) -> Any:
        """AIService using the injected provider or config.json's Gemini settings."""
        from ..ai.service import AIService, create_ai_service

        if self._ai_provider is not None:
            return AIService(self._ai_provider)
        config = self.get_config()
        return create_ai_service(api_key=config.gemini_api_key, model=config.gemini_model)

    def tree_service(self) -> TreeService:
        return TreeService(self.config_service.require_lora_root(), self.meta_store)

    def wildcard_service(self) -> WildcardService:
        return WildcardService(self.config_service.require_wildcard_root())

    # =========================================================================
    # LoRA Tree
    # =========================================================================

    def list_loras(self) -> LoraFilesResponse:
        """
        Scan the LoRA directory and return the tree with all metadata.

        An unconfigured or missing directory yields an empty tree.
        """
        meta = self.meta_store.read()
        root = self.config_service.lora_root()
        if root is None:
            return LoraFilesResponse(files=[], meta=meta, root_dir="")
        return LoraFilesResponse(files=scan_tree(root, meta), meta=meta, root_dir=str(root))

    def get_lora(self, path: str) -> FileNode:
        """Scanned file node for a relative path."""
        root = self.config_service.require_lora_root()
        node = find_node(scan_tree(root, self.meta_store.read()), path)
        if not isinstance(node, FileNode):
            raise NotFoundError(f"LoRA not found: {path}")
        return node

    def image_path(self, rel_path: str) -> Path:
        return resolve_image(self.config_service.require_lora_root(), rel_path)

    def update_meta(self, path: str, patch: Dict[str, Any]) -> MetaRecord:
        return self.meta_store.write(path, patch)

    def update_meta_batch(self, items: List[Dict[str, Any]]) -> int:
        """Apply ``[{path, data}]`` patches in one save."""
        return self.meta_store.write_batch((item["path"], item.get("data") or {}) for item in items)

    def create_folder(self, parent_path: str, name: str) -> str:
        return self.tree_service().create_folder(parent_path, name)

    def rename(self, path: str, new_name: str) -> str:
        return self.tree_service().rename(path, new_name)

    def delete(self, path: str, purge_meta: bool = True) -> int:
        return self.tree_service().delete(path, purge_meta=purge_meta)

    def move(self, source: str, dest: str) -> str:
        return self.tree_service().move(source, dest)

    def move_batch(self, sources: List[str], dest: str) -> BatchMoveResult:
        return self.tree_service().move_batch(sources, dest)

    def reorder(self, dragged: List[str], target: str) -> ReorderResult:
        root = self.config_service.require_lora_root()
        tree = scan_tree(root, self.meta_store.read())
        return self.reorder_engine.reorder(tree, dragged, target)

    def duplicates(self, path: str = "") -> List[List[FileNode]]:
        """Duplicate sets among files at or below ``path``."""
        root = self.config_service.require_lora_root()
        tree = scan_tree(root, self.meta_store.read())
        if path:
            node = find_node(tree, path)
            if node is None:
                raise NotFoundError(f"Path not found: {path}")
            tree = [node]
        return find_duplicates(flatten_files(tree))

    def describe_model(
        self,
        model_id: int,
        lora_path: Optional[str] = None,
        refresh: bool = False,
    ) -> ModelDescription:
        root = self.config_service.lora_root() if lora_path else None
        return self.description_service.describe(model_id, root=root, lora_path=lora_path, refresh=refresh)

    # =========================================================================
    # Uploads
    # =========================================================================

    def save_upload(self, content: bytes, filename: Optional[str]) -> str:
        return self.upload_service.save_upload(content, filename)

    def save_preview(self, lora_path: str, content: bytes, filename: Optional[str]) -> str:
        root = self.config_service.require_lora_root()
        return self.upload_service.save_preview(root, lora_path, content, filename)

    def save_tag_image(self, lora_path: str, tag: str, content: bytes, filename: Optional[str]) -> str:
        root = self.config_service.require_lora_root()
        return self.upload_service.save_tag_image(root, lora_path, tag, content, filename)

    # =========================================================================
    # Characters
    # =========================================================================

    def analyze_tags(self, trigger_words: List[str]) -> TagAnalysis:
        return self.ai_service().analyze_tags(trigger_words)

    def register_character(
        self,
        lora_path: str,
        name: Optional[str] = None,
        use_ai: bool = False,
    ) -> Character:
        """Create a character from a LoRA, optionally splitting tags with AI."""
        lora = self.get_lora(lora_path)
        analyze = self.ai_service().analyze_tags if use_ai else None
        return self.character_service.register_from_lora(
            lora, self.meta_store.get(lora.path), name=name, analyze=analyze,
        )

    def register_characters(self, lora_paths: List[str], use_ai: bool = False) -> Dict[str, Any]:
        """
        Register several LoRAs; failures are counted, not raised.

        Returns:
            ``{"success": n, "failed": m, "errors": {path: message}}``
        """
        root = self.config_service.require_lora_root()
        meta = self.meta_store.read()
        tree = scan_tree(root, meta)
        analyze = self.ai_service().analyze_tags if use_ai else None

        created = 0
        errors: Dict[str, str] = {}
        for path in lora_paths:
            try:
                node = find_node(tree, path)
                if not isinstance(node, FileNode):
                    raise NotFoundError(f"LoRA not found: {path}")
                self.character_service.register_from_lora(
                    node, self.meta_store.get(node.path), analyze=analyze,
                )
                created += 1
            except (StoreError, ValueError) as e:
                logger.warning("[characters] Registration failed for %s: %s", path, e)
                errors[path] = str(e)
        return {"success": created, "failed": len(errors), "errors": errors}

    # =========================================================================
    # Prompts
    # =========================================================================

    def decompose_prompts(
        self,
        lines: List[str],
        cancel_event: Optional[threading.Event] = None,
    ) -> DecompositionResult:
        return self.ai_service().decompose_prompts(lines, cancel_event=cancel_event)

    # =========================================================================
    # Wildcards
    # =========================================================================

    def expand_wildcard(self, path: str, directive: str) -> Dict[str, Any]:
        """Append AI-generated lines to a wildcard file."""
        wildcards = self.wildcard_service()
        existing = wildcards.read(path).splitlines()
        new_lines = self.ai_service().expand_wildcard(existing, directive)
        added = wildcards.append_lines(path, new_lines)
        logger.info("[wildcards] Added %d line(s) to %s", added, path)
        return {"added": added, "lines": new_lines, "content": wildcards.read(path)}

    # =========================================================================
    # Status
    # =========================================================================

    def status(self) -> Dict[str, Any]:
        """Summary for the status endpoint and CLI."""
        root = self.config_service.lora_root()
        lora_count = len(flatten_files(scan_tree(root))) if root is not None else 0
        return {
            "version": __version__,
            "dataDir": str(self.layout.root),
            "initialized": self.is_initialized(),
            "loraDir": str(root) if root is not None else None,
            "loraDirFound": root is not None,
            "loraCount": lora_count,
            "metaCount": len(self.meta_store.read()),
            "characterCount": len(self.character_service.list_characters()),
            "listCount": len(self.character_service.get_lists()),
        }
