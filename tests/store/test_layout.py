"""
Tests for StoreLayout

Tests the data directory layout and atomic JSON I/O.
"""

import json
import tempfile
from pathlib import Path

import pytest

from src.store.layout import StoreLayout


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def layout(temp_dir):
    """Create a StoreLayout with temp directory."""
    return StoreLayout(temp_dir / "data")


class TestStoreLayoutInit:
    """Tests for store initialization."""

    def test_not_initialized_initially(self, layout):
        """Store should not be initialized by default."""
        assert not layout.is_initialized()

    def test_init_creates_documents(self, layout):
        """Init should create the default documents and uploads dir."""
        layout.init_store()

        assert layout.is_initialized()
        assert layout.uploads_path.is_dir()
        assert json.loads(layout.characters_path.read_text()) == []
        assert json.loads(layout.lists_path.read_text()) == []
        assert json.loads(layout.situations_path.read_text()) == {}
        assert json.loads(layout.lora_meta_path.read_text()) == {}

    def test_init_keeps_existing_documents(self, layout):
        """Init must never overwrite documents that already exist."""
        layout.root.mkdir(parents=True)
        layout.lists_path.write_text('["Favorites"]')

        layout.init_store()

        assert json.loads(layout.lists_path.read_text()) == ["Favorites"]

    def test_config_is_not_created(self, layout):
        """config.json only appears once the user saves settings."""
        layout.init_store()
        assert not layout.config_path.exists()

    def test_default_root_from_env(self, temp_dir, monkeypatch):
        """ATELIER_DATA_DIR is used when no root is passed."""
        monkeypatch.setenv("ATELIER_DATA_DIR", str(temp_dir / "from-env"))
        assert StoreLayout().root == (temp_dir / "from-env").resolve()


class TestJsonIO:
    """Tests for atomic JSON writes."""

    def test_write_then_read(self, layout):
        path = layout.root / "doc.json"
        layout.write_json(path, {"name": "Zoë", "n": [1, 2]})

        assert layout.read_json(path) == {"name": "Zoë", "n": [1, 2]}
        # Non-ASCII is written as-is
        assert "Zoë" in path.read_text(encoding="utf-8")

    def test_no_temp_file_left_behind(self, layout):
        path = layout.root / "doc.json"
        layout.write_json(path, [1])
        layout.write_json(path, [2])

        assert not path.with_suffix(".tmp").exists()
        assert layout.read_json(path) == [2]

    def test_read_missing_returns_default(self, layout):
        assert layout.read_json(layout.root / "missing.json", default={"x": 1}) == {"x": 1}
        assert layout.read_json(layout.root / "missing.json") is None


class TestLocking:
    """Tests for the data directory lock."""

    def test_lock_creates_lock_file(self, layout):
        with layout.lock():
            assert layout.lock_file_path.exists()

    def test_lock_is_released(self, layout):
        with layout.lock():
            pass
        # A second acquisition must not time out
        with layout.lock(timeout=1):
            pass
