"""
System Router

Health check, store status, and the flat user settings document.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel

from src.store import __version__
from src.store.api import get_store, http_errors

router = APIRouter()
health_router = APIRouter()
config_router = APIRouter()

VERSION = __version__


class StatusResponse(BaseModel):
    """System status response."""
    status: str
    version: str
    data_dir: str
    store_initialized: bool
    lora_dir: Optional[str] = None
    lora_dir_found: bool
    lora_count: int
    meta_count: int
    character_count: int
    list_count: int


@health_router.get("/health")
def health():
    """Liveness check."""
    return {"status": "ok"}


@router.get("/status", response_model=StatusResponse)
def get_status(store=Depends(get_store)):
    """Version, data directory, LoRA directory and document counts."""
    info = store.status()
    return StatusResponse(
        status="ok",
        version=VERSION,
        data_dir=info["dataDir"],
        store_initialized=info["initialized"],
        lora_dir=info["loraDir"],
        lora_dir_found=info["loraDirFound"],
        lora_count=info["loraCount"],
        meta_count=info["metaCount"],
        character_count=info["characterCount"],
        list_count=info["listCount"],
    )


@config_router.get("", response_model=Dict[str, Any])
def get_app_config(store=Depends(get_store)):
    """User settings with environment fallbacks applied."""
    return store.get_config().to_json()


@config_router.put("", response_model=Dict[str, Any])
def update_app_config(patch: Dict[str, Any] = Body(...), store=Depends(get_store)):
    """Shallow-merge keys into config.json."""
    if not isinstance(patch, dict):
        raise HTTPException(status_code=400, detail="Config body must be an object")
    with http_errors():
        return store.update_config(patch).to_json()
