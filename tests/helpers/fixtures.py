"""
Test fixtures and helpers for Atelier tests.

Provides:
- Fake Civitai client for offline testing
- Fake AI provider with scripted responses
- LoRA tree and safetensors header builders
- An isolated store context (data dir + LoRA dir + wildcard dir)
"""

from __future__ import annotations

import json
import struct
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from unittest.mock import MagicMock

import requests

from src.ai.providers.base import AIProvider, ProviderResult, ProviderStatus


# =============================================================================
# Filesystem Builders
# =============================================================================

def make_safetensors(path: Path, metadata: Optional[Dict[str, str]] = None, payload: bytes = b"\0" * 16) -> Path:
    """Write a minimal .safetensors file with an optional __metadata__ block."""
    header: Dict[str, Any] = {}
    if metadata is not None:
        header["__metadata__"] = metadata
    raw = json.dumps(header).encode("utf-8")
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        f.write(struct.pack("<Q", len(raw)))
        f.write(raw)
        f.write(payload)
    return path


def build_tree(root: Path, files: Dict[str, Union[str, bytes, dict, None]]) -> Path:
    """
    Create files under ``root``.

    Keys are relative POSIX paths; a trailing ``/`` creates a directory.
    Values: bytes/str are written as-is, dicts as JSON, None as 8 bytes.
    """
    root.mkdir(parents=True, exist_ok=True)
    for rel, content in files.items():
        target = root / rel
        if rel.endswith("/"):
            target.mkdir(parents=True, exist_ok=True)
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        if content is None:
            target.write_bytes(b"\0" * 8)
        elif isinstance(content, bytes):
            target.write_bytes(content)
        elif isinstance(content, dict):
            target.write_text(json.dumps(content), encoding="utf-8")
        else:
            target.write_text(content, encoding="utf-8")
    return root


def sidecar_info(
    model_id: int,
    base_model: str = "SDXL 1.0",
    trained_words: Optional[List[str]] = None,
    images: Optional[List[Any]] = None,
    description: str = "",
) -> Dict[str, Any]:
    """A Civitai model document as saved in ``<stem>.civitai.info``."""
    return {
        "id": model_id,
        "name": f"Model {model_id}",
        "type": "LORA",
        "description": description,
        "nsfw": False,
        "modelVersions": [
            {
                "id": model_id * 10,
                "name": "v1.0",
                "baseModel": base_model,
                "trainedWords": trained_words or [],
                "description": "",
                "images": images or [],
            }
        ],
    }


# =============================================================================
# Fake Civitai Client
# =============================================================================

def http_error(status: int) -> requests.HTTPError:
    """HTTPError carrying a response with ``status``."""
    response = MagicMock(spec=requests.Response)
    response.status_code = status
    return requests.HTTPError(f"{status} Error", response=response)


class FakeCivitaiClient:
    """
    Fake Civitai client for offline testing.

    Models added with add_model() are returned by get_model(); unknown IDs
    raise a 404 HTTPError. Set ``error`` to make every call raise it.
    """

    def __init__(self):
        self.models: Dict[int, Dict[str, Any]] = {}
        self.error: Optional[Exception] = None
        self.calls: List[int] = []

    def add_model(self, data: Dict[str, Any]) -> None:
        self.models[int(data["id"])] = data

    def get_model(self, model_id: int) -> Dict[str, Any]:
        self.calls.append(int(model_id))
        if self.error is not None:
            raise self.error
        if int(model_id) not in self.models:
            raise http_error(404)
        return self.models[int(model_id)]


# =============================================================================
# Fake AI Provider
# =============================================================================

class FakeProvider(AIProvider):
    """
    AI provider returning scripted results.

    ``responses`` are consumed in order; each is a ProviderResult, an
    Exception-free output value (wrapped as success), or a callable taking
    the prompt. When the queue is empty ``default`` is used.
    """

    provider_id = "fake"

    def __init__(self, responses: Optional[List[Any]] = None, default: Any = None, available: bool = True):
        super().__init__(model="fake-model")
        self.responses = list(responses or [])
        self.default = default
        self.available = available
        self.prompts: List[str] = []
        self.calls: List[Dict[str, Any]] = []

    def detect_availability(self) -> ProviderStatus:
        if not self.available:
            return ProviderStatus(provider_id=self.provider_id, available=False, error="API key is not configured")
        return ProviderStatus(provider_id=self.provider_id, available=True, models=["fake-model"])

    def list_models(self) -> List[str]:
        return ["fake-model"]

    def execute(self, prompt, timeout=60, json_mode=True, system_instruction=None) -> ProviderResult:
        self.prompts.append(prompt)
        self.calls.append({"prompt": prompt, "json_mode": json_mode, "system_instruction": system_instruction})
        item = self.responses.pop(0) if self.responses else self.default
        if callable(item):
            item = item(prompt)
        if isinstance(item, ProviderResult):
            return item
        if item is None:
            return ProviderResult(success=False, error="no response", provider_id=self.provider_id)
        return ProviderResult(success=True, output=item, provider_id=self.provider_id, model=self.model)


def failed(error: str = "boom", blocked: bool = False) -> ProviderResult:
    """Failed provider result."""
    return ProviderResult(success=False, error=error, provider_id="fake", blocked=blocked)


# =============================================================================
# Store Context
# =============================================================================

@dataclass
class TestStoreContext:
    """
    Isolated store for tests: data dir, LoRA dir and wildcard dir under one
    temporary directory, with config.json pointing at them.
    """

    __test__ = False

    civitai_client: Optional[FakeCivitaiClient] = None
    ai_provider: Optional[AIProvider] = None
    base: Optional[Path] = None
    store: Any = None
    _tmpdir: Any = field(default=None, repr=False)

    def __enter__(self) -> "TestStoreContext":
        from src.store import Store

        if self.base is None:
            self._tmpdir = tempfile.TemporaryDirectory()
            self.base = Path(self._tmpdir.name)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.lora_dir.mkdir(parents=True, exist_ok=True)
        self.wildcard_dir.mkdir(parents=True, exist_ok=True)

        self.store = Store(
            root=self.data_dir,
            civitai_client=self.civitai_client or FakeCivitaiClient(),
            ai_provider=self.ai_provider,
        )
        self.store.init()
        self.store.update_config({
            "loraDir": str(self.lora_dir),
            "wildcardDir": str(self.wildcard_dir),
        })
        return self

    def __exit__(self, *exc) -> None:
        if self._tmpdir is not None:
            self._tmpdir.cleanup()

    @property
    def data_dir(self) -> Path:
        return self.base / "data"

    @property
    def lora_dir(self) -> Path:
        return self.base / "loras"

    @property
    def wildcard_dir(self) -> Path:
        return self.base / "wildcards"

    def meta(self) -> Dict[str, Dict[str, Any]]:
        return self.store.meta_store.read()
