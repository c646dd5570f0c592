"""
Tests for DescriptionService

Tests the sidecar -> cache -> Civitai resolution order, write-back and
fallback behavior. Uses FakeCivitaiClient, no network.
"""

import json

import pytest
import requests

from src.store.description_service import (
    DescriptionCache,
    DescriptionService,
    combine_description,
    summary_description,
)
from src.store.layout import NotFoundError, StoreLayout, UpstreamError
from src.store.meta_store import MetaStore
from tests.helpers.fixtures import FakeCivitaiClient, build_tree, sidecar_info


IMAGES = [{"url": "https://img/1.jpg", "width": 512}, "https://img/2.jpg"]


@pytest.fixture
def meta_store(tmp_path):
    layout = StoreLayout(tmp_path / "data")
    layout.init_store()
    return MetaStore(layout)


@pytest.fixture
def lora_root(tmp_path):
    return build_tree(tmp_path / "loras", {"Anime/alice.safetensors": None})


@pytest.fixture
def civitai():
    client = FakeCivitaiClient()
    client.add_model(sidecar_info(42, images=IMAGES, description="<p>Remote</p>"))
    return client


@pytest.fixture
def service(meta_store, civitai):
    return DescriptionService(meta_store, civitai, DescriptionCache())


class TestLocalSidecar:
    """Tests for answers served from the sidecar."""

    def test_sidecar_is_preferred(self, service, civitai, lora_root):
        sidecar = lora_root / "Anime" / "alice.civitai.info"
        sidecar.write_text(json.dumps(sidecar_info(42, description="<p>Local</p>", images=IMAGES)))

        result = service.describe(42, root=lora_root, lora_path="Anime/alice.safetensors")

        assert result.is_local is True
        assert result.description == "<p>Local</p>"
        assert [img.url for img in result.images] == ["https://img/1.jpg", "https://img/2.jpg"]
        assert civitai.calls == []

    def test_thin_sidecar_is_not_enough(self, service, civitai, lora_root):
        (lora_root / "Anime" / "alice.civitai.info").write_text(json.dumps({"id": 42}))

        result = service.describe(42, root=lora_root, lora_path="Anime/alice.safetensors")

        assert result.is_local is False
        assert civitai.calls == [42]


class TestRemoteLookup:
    """Tests for live lookups."""

    def test_fetch_writes_sidecar_and_meta(self, service, meta_store, lora_root):
        result = service.describe(42, root=lora_root, lora_path="Anime/alice.safetensors")

        assert result.is_local is False
        assert result.description == "<p>Remote</p>"
        sidecar = lora_root / "Anime" / "alice.civitai.info"
        assert json.loads(sidecar.read_text())["id"] == 42
        assert meta_store.get("Anime/alice.safetensors").civitai_images == [
            "https://img/1.jpg",
            "https://img/2.jpg",
        ]

    def test_sidecar_write_failure_keeps_result(self, service, meta_store, lora_root, monkeypatch):
        """A read-only LoRA folder still gets the fetched description."""
        original = meta_store.layout.write_json

        def write_json(path, data):
            if path.name.endswith(".civitai.info"):
                raise PermissionError("read-only")
            original(path, data)

        monkeypatch.setattr(meta_store.layout, "write_json", write_json)

        result = service.describe(42, root=lora_root, lora_path="Anime/alice.safetensors")

        assert result.description == "<p>Remote</p>"
        assert not (lora_root / "Anime" / "alice.civitai.info").exists()
        assert len(meta_store.get("Anime/alice.safetensors").civitai_images) == 2

    def test_sidecar_write_leaves_no_temp_file(self, service, lora_root):
        service.describe(42, root=lora_root, lora_path="Anime/alice.safetensors")

        assert sorted(p.name for p in (lora_root / "Anime").iterdir()) == [
            "alice.civitai.info",
            "alice.safetensors",
        ]

    def test_cache_is_used_without_lora(self, service, civitai):
        service.describe(42)
        service.describe(42)
        assert civitai.calls == [42]

    def test_refresh_bypasses_cache(self, service, civitai):
        service.describe(42)
        service.describe(42, refresh=True)
        assert civitai.calls == [42, 42]

    def test_not_found(self, service):
        with pytest.raises(NotFoundError):
            service.describe(999)

    def test_missing_description_uses_summary(self, service, civitai):
        civitai.add_model(sidecar_info(7, base_model="Pony", trained_words=["cape"]))

        result = service.describe(7)

        assert "no text description" in result.description
        assert "Pony" in result.description
        assert "cape" in result.description

    def test_nothing_to_show(self, service, civitai):
        civitai.add_model({"id": 8, "modelVersions": []})
        with pytest.raises(NotFoundError):
            service.describe(8)


class TestFallback:
    """Tests for upstream failures."""

    def test_error_without_sidecar(self, service, civitai):
        civitai.error = requests.ConnectionError("offline")
        with pytest.raises(UpstreamError):
            service.describe(42)

    def test_error_falls_back_to_sidecar(self, service, civitai, lora_root):
        sidecar = lora_root / "Anime" / "alice.civitai.info"
        sidecar.write_text(json.dumps(sidecar_info(42, description="<p>Local</p>")))
        civitai.error = requests.Timeout("slow")

        result = service.describe(42, root=lora_root, lora_path="Anime/alice.safetensors", refresh=True)

        assert result.is_local is True
        assert result.description == "<p>Local</p>"


class TestCombineDescription:
    """Tests for description assembly."""

    def test_versions_appended(self):
        info = {
            "description": "model",
            "modelVersions": [
                {"name": "v2", "description": "second"},
                {"name": "v1", "description": "model"},
            ],
        }
        assert combine_description(info) == "model<hr/><h4>Version: v2</h4>second"
        assert combine_description(info, all_versions=False) == "model<hr/><h4>Version: v2</h4>second"

    def test_only_version_description(self):
        info = {"modelVersions": [{"name": "v1", "description": "only"}]}
        assert combine_description(info) == "<h4>Version: v1</h4>only"

    def test_summary_date(self):
        html = summary_description({"baseModel": "SDXL 1.0", "createdAt": "2024-03-05T10:00:00Z"})
        assert "2024-03-05" in html
        assert "Trained Words" not in html


class TestDescriptionCache:
    def test_keys_are_stringified(self):
        from src.store.models import ModelDescription

        cache = DescriptionCache()
        cache.put(5, ModelDescription(description="d"))
        assert cache.get("5").description == "d"
        assert len(cache) == 1
        cache.clear()
        assert cache.get(5) is None
