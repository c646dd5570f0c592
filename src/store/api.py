"""
Atelier Store API Routers

FastAPI routers for Store operations.

Usage:
    from fastapi import FastAPI
    from src.store.api import create_store_routers

    app = FastAPI()
    for prefix, router in create_store_routers():
        app.include_router(router, prefix=f"/api{prefix}")
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

from fastapi import APIRouter, Body, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import FileResponse
from pydantic import BaseModel, ConfigDict, Field

from ..ai.service import AINotConfiguredError, AITaskError
from ..utils.paths import PathTraversalError
from .layout import (
    ConflictError,
    NotConfiguredError,
    NotFoundError,
    ReorderBusyError,
    StoreError,
    UpstreamError,
)
from .models import Character, CharacterInput
from .prompt_service import GenerateRequest, generate_prompts

logger = logging.getLogger(__name__)


# =============================================================================
# Request Models
# =============================================================================

class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CharacterOrderRequest(BaseModel):
    characters: List[Character]


class FromLoraRequest(_CamelModel):
    lora_path: str = Field(alias="loraPath")
    name: Optional[str] = None
    use_ai: bool = Field(default=False, alias="useAi")


class FromLoraBatchRequest(_CamelModel):
    lora_paths: List[str] = Field(alias="loraPaths")
    use_ai: bool = Field(default=False, alias="useAi")


class ListsRequest(BaseModel):
    lists: List[str]


class RenameListRequest(_CamelModel):
    new_name: str = Field(alias="newName")


class DecomposeRequest(BaseModel):
    lines: List[str] = Field(default_factory=list)
    text: Optional[str] = None


class MetaUpdateRequest(BaseModel):
    path: str
    data: Dict[str, Any] = Field(default_factory=dict)


class MetaBatchRequest(BaseModel):
    updates: List[MetaUpdateRequest]


class FolderRequest(_CamelModel):
    parent_path: str = Field(default="", alias="parentPath")
    name: str


class RenameRequest(_CamelModel):
    current_path: str = Field(alias="currentPath")
    new_name: str = Field(alias="newName")


class DeleteRequest(_CamelModel):
    target_path: str = Field(alias="targetPath")
    purge_meta: bool = Field(default=True, alias="purgeMeta")


class MoveRequest(_CamelModel):
    source_path: str = Field(alias="sourcePath")
    dest_path: str = Field(default="", alias="destPath")


class MoveBatchRequest(_CamelModel):
    source_paths: List[str] = Field(alias="sourcePaths")
    dest_path: str = Field(default="", alias="destPath")


class ReorderRequest(_CamelModel):
    dragged: List[str]
    target: str


class AnalyzeTagsRequest(_CamelModel):
    trigger_words: List[str] = Field(alias="triggerWords")


class WildcardContentRequest(BaseModel):
    path: str
    content: str = ""


class WildcardExpandRequest(BaseModel):
    path: str
    directive: str


# =============================================================================
# Store Instance Management
# =============================================================================

_store_instance = None
_store_lock = threading.Lock()


def get_store():
    """
    Get or create Store singleton.

    Reads configuration from config/settings.py so the Store uses the same
    data directory and API keys as the rest of the application.
    """
    global _store_instance
    if _store_instance is None:
        with _store_lock:
            if _store_instance is None:
                from . import Store
                from config.settings import get_config

                cfg = get_config()
                store = Store(
                    root=cfg.data_path,
                    config_defaults=cfg.store_defaults(),
                    civitai_api_key=cfg.api.civitai_token,
                )
                store.init()
                _store_instance = store
    return _store_instance


def reset_store():
    """Reset Store singleton (useful for config changes)."""
    global _store_instance
    _store_instance = None


@contextmanager
def http_errors() -> Iterator[None]:
    """Translate store and AI exceptions into HTTP errors."""
    try:
        yield
    except HTTPException:
        raise
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PathTraversalError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ReorderBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except UpstreamError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except (ConflictError, NotConfiguredError, AINotConfiguredError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AITaskError as e:
        status = 422 if e.blocked else 502
        raise HTTPException(status_code=status, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


async def _read_upload(image: Optional[UploadFile]) -> Tuple[bytes, Optional[str]]:
    if image is None:
        raise HTTPException(status_code=400, detail="No file uploaded")
    return await image.read(), image.filename


# =============================================================================
# Characters Router
# =============================================================================

characters_router = APIRouter(tags=["characters"])


@characters_router.get("", response_model=List[Dict[str, Any]])
def list_characters(store=Depends(get_store)):
    """List all characters."""
    return [c.to_json() for c in store.character_service.list_characters()]


@characters_router.post("", response_model=Dict[str, Any])
def create_character(payload: CharacterInput, store=Depends(get_store)):
    """Create a character."""
    with http_errors():
        return store.character_service.create(payload).to_json()


@characters_router.put("/order", response_model=Dict[str, Any])
def reorder_characters(request: CharacterOrderRequest, store=Depends(get_store)):
    """Persist the full character list in a new order."""
    count = store.character_service.reorder(request.characters)
    return {"success": True, "count": count}


@characters_router.post("/from-lora", response_model=Dict[str, Any])
def character_from_lora(request: FromLoraRequest, store=Depends(get_store)):
    """Register a character from a LoRA file."""
    with http_errors():
        character = store.register_character(request.lora_path, name=request.name, use_ai=request.use_ai)
    return character.to_json()


@characters_router.post("/from-lora/batch", response_model=Dict[str, Any])
def characters_from_lora_batch(request: FromLoraBatchRequest, store=Depends(get_store)):
    """Register several LoRAs; failures are reported per path."""
    with http_errors():
        return store.register_characters(request.lora_paths, use_ai=request.use_ai)


@characters_router.get("/{character_id}/prompt", response_model=Dict[str, Any])
def character_prompt(
    character_id: str,
    variation_id: Optional[str] = Query(None, alias="variationId"),
    store=Depends(get_store),
):
    """Combined base + variation prompt."""
    with http_errors():
        prompt = store.character_service.combined_prompt(character_id, variation_id)
    return {"prompt": prompt}


@characters_router.put("/{character_id}", response_model=Dict[str, Any])
def update_character(character_id: str, payload: CharacterInput, store=Depends(get_store)):
    """Merge fields into an existing character."""
    with http_errors():
        return store.character_service.update(character_id, payload).to_json()


@characters_router.delete("/{character_id}", response_model=Dict[str, Any])
def delete_character(character_id: str, store=Depends(get_store)):
    """Delete a character."""
    with http_errors():
        store.character_service.delete(character_id)
    return {"success": True}


# =============================================================================
# Lists Router
# =============================================================================

lists_router = APIRouter(tags=["lists"])


@lists_router.get("", response_model=List[str])
def get_lists(store=Depends(get_store)):
    """Favorite list names."""
    return store.character_service.get_lists()


@lists_router.post("", response_model=List[str])
def save_lists(request: ListsRequest, store=Depends(get_store)):
    """Replace the favorite list names."""
    return store.character_service.save_lists(request.lists)


@lists_router.put("/{name}", response_model=List[str])
def rename_list(name: str, request: RenameListRequest, store=Depends(get_store)):
    """Rename a list and every reference to it."""
    with http_errors():
        return store.character_service.rename_list(name, request.new_name)


@lists_router.delete("/{name}", response_model=List[str])
def delete_list(name: str, store=Depends(get_store)):
    """Delete a list and every reference to it."""
    return store.character_service.delete_list(name)


# =============================================================================
# Situations / Prompts Router
# =============================================================================

situations_router = APIRouter(tags=["situations"])


@situations_router.get("", response_model=Dict[str, str])
def get_situations(store=Depends(get_store)):
    return store.prompt_service.get_situations()


@situations_router.post("", response_model=Dict[str, str])
def save_situations(situations: Dict[str, str] = Body(...), store=Depends(get_store)):
    """Replace all situation templates."""
    return store.prompt_service.save_situations(situations)


@situations_router.delete("/{name}", response_model=Dict[str, str])
def delete_situation(name: str, store=Depends(get_store)):
    with http_errors():
        return store.prompt_service.delete_situation(name)


prompts_router = APIRouter(tags=["prompts"])


@prompts_router.post("/generate", response_model=Dict[str, Any])
def generate(request: GenerateRequest, store=Depends(get_store)):
    """
    Cross character entries with situation lines.

    ``situations`` may name stored templates; their lines are expanded.
    Unknown names are used as literal lines.
    """
    stored = store.prompt_service.get_situations()
    lines: List[str] = []
    for item in request.situations:
        if item in stored:
            lines.extend(store.prompt_service.situation_lines([item]))
        else:
            lines.append(item)
    text = generate_prompts(request.entries, lines, request.global_prompt, request.position)
    return {"prompts": text, "count": len(text.splitlines()) if text else 0}


@prompts_router.post("/decompose", response_model=Dict[str, Any])
def decompose(request: DecomposeRequest, store=Depends(get_store)):
    """Split prompt lines into attribute columns with AI."""
    lines = list(request.lines)
    if request.text:
        lines.extend(request.text.splitlines())
    with http_errors():
        result = store.decompose_prompts(lines)
    return result.model_dump(mode="json")


uploads_router = APIRouter(tags=["uploads"])


@uploads_router.post("", response_model=Dict[str, Any])
async def upload_image(image: Optional[UploadFile] = File(None), store=Depends(get_store)):
    """Store a generic image under data/uploads."""
    content, filename = await _read_upload(image)
    return {"url": store.save_upload(content, filename)}


# =============================================================================
# LoRA Router
# =============================================================================

loras_router = APIRouter(tags=["loras"])


@loras_router.get("/files", response_model=Dict[str, Any])
def list_lora_files(store=Depends(get_store)):
    """Scanned LoRA tree with the full metadata document."""
    return store.list_loras().model_dump(by_alias=True, mode="json")


@loras_router.get("/image")
def get_lora_image(path: str = Query(...), store=Depends(get_store)):
    """Serve a preview image or video from the LoRA directory."""
    with http_errors():
        full = store.image_path(path)
    return FileResponse(str(full))


@loras_router.put("/meta", response_model=Dict[str, Any])
def update_lora_meta(request: MetaUpdateRequest, store=Depends(get_store)):
    """Merge a metadata patch into one record."""
    with http_errors():
        record = store.update_meta(request.path, request.data)
    return {"success": True, "meta": record.to_json()}


@loras_router.post("/meta/batch", response_model=Dict[str, Any])
def update_lora_meta_batch(request: MetaBatchRequest, store=Depends(get_store)):
    """Merge several metadata patches in one save."""
    with http_errors():
        count = store.update_meta_batch([u.model_dump() for u in request.updates])
    return {"success": True, "count": count}


@loras_router.post("/folder", response_model=Dict[str, Any])
def create_lora_folder(request: FolderRequest, store=Depends(get_store)):
    with http_errors():
        path = store.create_folder(request.parent_path, request.name)
    return {"success": True, "path": path}


@loras_router.put("/rename", response_model=Dict[str, Any])
def rename_lora(request: RenameRequest, store=Depends(get_store)):
    """Rename a file or folder; metadata keys follow."""
    with http_errors():
        new_path = store.rename(request.current_path, request.new_name)
    return {"success": True, "newPath": new_path}


@loras_router.delete("/delete", response_model=Dict[str, Any])
def delete_lora(request: DeleteRequest, store=Depends(get_store)):
    with http_errors():
        removed = store.delete(request.target_path, purge_meta=request.purge_meta)
    return {"success": True, "metaRemoved": removed}


@loras_router.post("/move", response_model=Dict[str, Any])
def move_lora(request: MoveRequest, store=Depends(get_store)):
    with http_errors():
        new_path = store.move(request.source_path, request.dest_path)
    return {"success": True, "newPath": new_path}


@loras_router.post("/move-batch", response_model=Dict[str, Any])
def move_lora_batch(request: MoveBatchRequest, store=Depends(get_store)):
    """Move several paths; succeeds if any of them moved."""
    with http_errors():
        result = store.move_batch(request.source_paths, request.dest_path)
    return result.model_dump(by_alias=True, mode="json")


@loras_router.post("/reorder", response_model=Dict[str, Any])
def reorder_loras(request: ReorderRequest, store=Depends(get_store)):
    """Apply a drag-and-drop reorder within one folder."""
    with http_errors():
        result = store.reorder(request.dragged, request.target)
    return result.model_dump(mode="json")


@loras_router.get("/duplicates", response_model=Dict[str, Any])
def lora_duplicates(path: str = Query(""), store=Depends(get_store)):
    """Sets of files sharing normalized name and size."""
    with http_errors():
        groups = store.duplicates(path)
    return {
        "groups": [[node.model_dump(by_alias=True, mode="json") for node in group] for group in groups],
        "count": len(groups),
    }


@loras_router.get("/model-description", response_model=Dict[str, Any])
def model_description(
    model_id: int = Query(..., alias="modelId"),
    lora_path: Optional[str] = Query(None, alias="loraPath"),
    refresh: bool = Query(False),
    store=Depends(get_store),
):
    """Civitai description for a model, from sidecar, cache or network."""
    with http_errors():
        result = store.describe_model(model_id, lora_path=lora_path, refresh=refresh)
    return result.model_dump(by_alias=True, mode="json", exclude_none=True)


@loras_router.post("/analyze-tags", response_model=Dict[str, Any])
def analyze_tags(request: AnalyzeTagsRequest, store=Depends(get_store)):
    """Split trigger words into base and variation prompts with AI."""
    with http_errors():
        result = store.analyze_tags(request.trigger_words)
    return result.model_dump(mode="json")


@loras_router.post("/upload-preview", response_model=Dict[str, Any])
async def upload_preview(
    image: Optional[UploadFile] = File(None),
    lora_path: str = Form(..., alias="loraPath"),
    store=Depends(get_store),
):
    """Store a preview image next to a LoRA file."""
    content, filename = await _read_upload(image)
    with http_errors():
        preview_path = store.save_preview(lora_path, content, filename)
    return {"success": True, "previewPath": preview_path}


@loras_router.post("/upload-tag-image", response_model=Dict[str, Any])
async def upload_tag_image(
    image: Optional[UploadFile] = File(None),
    lora_path: str = Form(..., alias="loraPath"),
    tag_name: str = Form(..., alias="tagName"),
    store=Depends(get_store),
):
    """Store an example image for one trigger tag."""
    content, filename = await _read_upload(image)
    with http_errors():
        image_path = store.save_tag_image(lora_path, tag_name, content, filename)
    return {"success": True, "imagePath": image_path}


# =============================================================================
# Wildcards Router
# =============================================================================

wildcards_router = APIRouter(tags=["wildcards"])


@wildcards_router.get("/files", response_model=Dict[str, Any])
def list_wildcards(store=Depends(get_store)):
    """Wildcard tree; empty when no directory is configured."""
    root = store.config_service.wildcard_root()
    if root is None:
        return {"files": [], "rootDir": store.get_config().wildcard_dir or ""}
    return {"files": store.wildcard_service().list_files(), "rootDir": str(root)}


@wildcards_router.get("/content", response_model=Dict[str, Any])
def get_wildcard_content(path: str = Query(...), store=Depends(get_store)):
    with http_errors():
        return {"content": store.wildcard_service().read(path)}


@wildcards_router.put("/content", response_model=Dict[str, Any])
def put_wildcard_content(request: WildcardContentRequest, store=Depends(get_store)):
    with http_errors():
        store.wildcard_service().write(request.path, request.content)
    return {"success": True}


@wildcards_router.post("/file", response_model=Dict[str, Any])
def create_wildcard(request: FolderRequest, store=Depends(get_store)):
    """Create an empty wildcard file (``.txt`` is appended if missing)."""
    with http_errors():
        path = store.wildcard_service().create(request.parent_path, request.name)
    return {"success": True, "path": path}


@wildcards_router.delete("/file", response_model=Dict[str, Any])
def delete_wildcard(request: DeleteRequest, store=Depends(get_store)):
    with http_errors():
        deleted = store.wildcard_service().delete(request.target_path)
    return {"success": deleted}


@wildcards_router.post("/expand", response_model=Dict[str, Any])
def expand_wildcard(request: WildcardExpandRequest, store=Depends(get_store)):
    """Append AI-generated lines to a wildcard file."""
    with http_errors():
        return store.expand_wildcard(request.path, request.directive)


# =============================================================================
# Router Factory
# =============================================================================

def create_store_routers() -> List[Tuple[str, APIRouter]]:
    """
    Create all store routers with their path prefixes.

    Returns:
        List of (prefix, APIRouter) pairs to mount under /api
    """
    return [
        ("/characters", characters_router),
        ("/lists", lists_router),
        ("/situations", situations_router),
        ("/prompts", prompts_router),
        ("/upload", uploads_router),
        ("/loras", loras_router),
        ("/wildcards", wildcards_router),
    ]
