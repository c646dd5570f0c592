"""
Tests for WildcardService.
"""

from pathlib import Path
from unittest.mock import patch

import pytest

from src.store.layout import ConflictError, NotFoundError
from src.store.wildcard_service import WildcardService
from src.utils.paths import PathTraversalError
from tests.helpers.fixtures import build_tree


@pytest.fixture
def root(tmp_path):
    return build_tree(tmp_path / "wildcards", {
        "hair.txt": "red\nblue\n",
        "outfits/casual.txt": "hoodie",
        "outfits/readme.md": "not listed",
        "empty/": None,
    })


@pytest.fixture
def service(root):
    return WildcardService(root)


class TestListing:
    """Tests for the wildcard tree."""

    def test_only_txt_files_listed(self, service):
        tree = service.list_files()

        assert [n["name"] for n in tree] == ["empty", "hair.txt", "outfits"]
        outfits = tree[2]
        assert outfits["type"] == "directory"
        assert [c["path"] for c in outfits["children"]] == ["outfits/casual.txt"]
        assert tree[1]["size"] == len("red\nblue\n")

    def test_broken_symlink_is_skipped(self, service, root, tmp_path):
        try:
            (root / "gone.txt").symlink_to(tmp_path / "missing.txt")
        except (OSError, NotImplementedError):
            pytest.skip("symlinks not supported")

        tree = service.list_files()

        assert [n["name"] for n in tree] == ["empty", "hair.txt", "outfits"]

    def test_unreadable_entry_is_skipped(self, service, root):
        real_stat = Path.stat

        def stat(path, *args, **kwargs):
            if path.name == "hair.txt":
                raise PermissionError("denied")
            return real_stat(path, *args, **kwargs)

        with patch.object(Path, "stat", stat):
            tree = service.list_files()

        assert [n["name"] for n in tree] == ["empty", "outfits"]
        assert [c["name"] for c in tree[1]["children"]] == ["casual.txt"]

    def test_missing_root(self, tmp_path):
        assert WildcardService(tmp_path / "nope").list_files() == []


class TestReadWrite:
    """Tests for content access."""

    def test_read(self, service):
        assert service.read("outfits/casual.txt") == "hoodie"

    def test_read_missing(self, service):
        with pytest.raises(NotFoundError):
            service.read("ghost.txt")

    def test_write_creates_parents(self, service, root):
        service.write("new/dir/eyes.txt", "green\n")
        assert (root / "new" / "dir" / "eyes.txt").read_text() == "green\n"

    def test_write_traversal(self, service, tmp_path):
        with pytest.raises(PathTraversalError):
            service.write("../escape.txt", "x")
        assert not (tmp_path / "escape.txt").exists()

    def test_append_lines(self, service):
        added = service.append_lines("outfits/casual.txt", ["  suit ", "", "kimono"])

        assert added == 2
        assert service.read("outfits/casual.txt") == "hoodie\nsuit\nkimono\n"

    def test_append_nothing(self, service):
        assert service.append_lines("hair.txt", ["", "  "]) == 0
        assert service.read("hair.txt") == "red\nblue\n"


class TestCreateDelete:
    """Tests for file creation and deletion."""

    def test_create_appends_extension(self, service, root):
        assert service.create("outfits", "formal") == "outfits/formal.txt"
        assert (root / "outfits" / "formal.txt").read_text() == ""

    def test_create_existing(self, service):
        with pytest.raises(ConflictError):
            service.create("", "hair.txt")

    def test_delete_file_and_directory(self, service, root):
        assert service.delete("hair.txt") is True
        assert service.delete("outfits") is True
        assert not (root / "outfits").exists()

    def test_delete_missing(self, service):
        assert service.delete("ghost.txt") is False

    def test_delete_root_refused(self, service):
        with pytest.raises(ConflictError):
            service.delete("")
