"""
Tests for TreeService

Tests create/rename/delete/move on the LoRA directory and that
lora_meta.json keys follow every change.
"""

import pytest

from src.store.layout import ConflictError, NotFoundError, StoreLayout
from src.store.meta_store import MetaStore
from src.store.tree_service import TreeService
from src.utils.paths import PathTraversalError
from tests.helpers.fixtures import build_tree


@pytest.fixture
def meta_store(tmp_path):
    layout = StoreLayout(tmp_path / "data")
    layout.init_store()
    return MetaStore(layout)


@pytest.fixture
def lora_root(tmp_path):
    return build_tree(tmp_path / "loras", {
        "a/b/x.safetensors": None,
        "a/b/c/y.safetensors": None,
        "m.safetensors": None,
        "m.png": b"png",
        "m.civitai.info": {"id": 1},
        "mm.safetensors": None,
        "Dest/": None,
    })


@pytest.fixture
def tree(lora_root, meta_store):
    return TreeService(lora_root, meta_store)


class TestCreateFolder:
    """Tests for folder creation."""

    def test_create(self, tree, lora_root):
        assert tree.create_folder("", "Anime") == "Anime"
        assert (lora_root / "Anime").is_dir()

    def test_create_nested(self, tree, lora_root):
        assert tree.create_folder("a/b", "new") == "a/b/new"
        assert (lora_root / "a" / "b" / "new").is_dir()

    def test_existing_folder_is_noop(self, tree):
        assert tree.create_folder("", "Dest") == "Dest"

    @pytest.mark.parametrize("name", ["", "  ", "x/y", "..", "a\\b"])
    def test_invalid_name(self, tree, name):
        with pytest.raises(ValueError):
            tree.create_folder("", name)

    def test_traversal_in_parent(self, tree, tmp_path):
        with pytest.raises(PathTraversalError):
            tree.create_folder("../outside", "x")
        assert not (tmp_path / "outside").exists()


class TestRename:
    """Tests for rename and metadata propagation."""

    def test_rename_directory_moves_descendant_keys(self, tree, meta_store, lora_root):
        meta_store.save({
            "a/b/x.safetensors": {"notes": "x"},
            "a/b/c/y.safetensors": {"notes": "y"},
        })

        new_path = tree.rename("a/b", "z")

        assert new_path == "a/z"
        assert (lora_root / "a" / "z" / "c" / "y.safetensors").is_file()
        data = meta_store.read()
        assert data == {
            "a/z/x.safetensors": {"notes": "x"},
            "a/z/c/y.safetensors": {"notes": "y"},
        }

    def test_rename_file(self, tree, meta_store, lora_root):
        meta_store.write("mm.safetensors", {"favorite": True})

        assert tree.rename("mm.safetensors", "nn.safetensors") == "nn.safetensors"
        assert (lora_root / "nn.safetensors").is_file()
        assert meta_store.get("nn.safetensors").favorite is True
        assert meta_store.get("mm.safetensors") is None

    def test_rename_missing(self, tree):
        with pytest.raises(NotFoundError):
            tree.rename("ghost.safetensors", "x.safetensors")

    def test_rename_onto_existing(self, tree):
        with pytest.raises(ConflictError):
            tree.rename("mm.safetensors", "m.safetensors")

    def test_case_only_rename_is_allowed(self, tree, lora_root):
        assert tree.rename("Dest", "dest") == "dest"
        assert "dest" in [p.name for p in lora_root.iterdir()]

    def test_rename_root_refused(self, tree):
        with pytest.raises(ConflictError):
            tree.rename("", "x")


class TestDelete:
    """Tests for delete and metadata purge."""

    def test_delete_file_removes_sidecars_and_record(self, tree, meta_store, lora_root):
        meta_store.save({"m.safetensors": {"notes": "m"}, "mm.safetensors": {"notes": "mm"}})

        assert tree.delete("m.safetensors") == 1

        assert not (lora_root / "m.safetensors").exists()
        assert not (lora_root / "m.png").exists()
        assert not (lora_root / "m.civitai.info").exists()
        # Sibling sharing a name prefix is untouched
        assert (lora_root / "mm.safetensors").exists()
        assert meta_store.read() == {"mm.safetensors": {"notes": "mm"}}

    def test_delete_keeps_dotted_neighbour(self, tree, meta_store, lora_root):
        """A longer-stemmed model and its preview are not companions."""
        build_tree(lora_root, {
            "model.safetensors": None,
            "model.png": b"png",
            "model.v2.safetensors": None,
            "model.v2.png": b"png",
        })
        meta_store.save({"model.safetensors": {}, "model.v2.safetensors": {"notes": "v2"}})

        tree.delete("model.safetensors")

        assert not (lora_root / "model.safetensors").exists()
        assert not (lora_root / "model.png").exists()
        assert (lora_root / "model.v2.safetensors").exists()
        assert (lora_root / "model.v2.png").exists()
        assert meta_store.read() == {"model.v2.safetensors": {"notes": "v2"}}

    def test_delete_keeps_same_stem_model(self, tree, lora_root):
        (lora_root / "m.pt").write_bytes(b"pt")

        tree.delete("m.safetensors")

        assert (lora_root / "m.pt").exists()
        assert not (lora_root / "m.png").exists()

    def test_delete_directory_purges_descendants(self, tree, meta_store, lora_root):
        meta_store.save({"a/b/x.safetensors": {}, "a/b/c/y.safetensors": {}, "m.safetensors": {}})

        assert tree.delete("a") == 2

        assert not (lora_root / "a").exists()
        assert meta_store.read() == {"m.safetensors": {}}

    def test_delete_directory_keeps_descendants(self, tree, meta_store):
        meta_store.save({"a/b/x.safetensors": {}, "a/b/c/y.safetensors": {}})

        assert tree.delete("a", purge_meta=False) == 0
        assert len(meta_store.read()) == 2

    def test_delete_missing(self, tree):
        with pytest.raises(NotFoundError):
            tree.delete("ghost")

    def test_delete_root_refused(self, tree, lora_root):
        with pytest.raises(ConflictError):
            tree.delete("/")
        assert lora_root.exists()

    def test_delete_traversal(self, tree, tmp_path):
        victim = tmp_path / "victim.txt"
        victim.write_text("keep")
        with pytest.raises(PathTraversalError):
            tree.delete("../victim.txt")
        assert victim.exists()


class TestMove:
    """Tests for single and batch moves."""

    def test_move_file_with_sidecars(self, tree, meta_store, lora_root):
        meta_store.write("m.safetensors", {"notes": "m"})

        assert tree.move("m.safetensors", "Dest") == "Dest/m.safetensors"

        for name in ("m.safetensors", "m.png", "m.civitai.info"):
            assert (lora_root / "Dest" / name).exists()
            assert not (lora_root / name).exists()
        assert (lora_root / "mm.safetensors").exists()
        assert meta_store.read() == {"Dest/m.safetensors": {"notes": "m"}}

    def test_move_keeps_dotted_neighbour(self, tree, meta_store, lora_root):
        build_tree(lora_root, {
            "model.safetensors": None,
            "model.civitai.info": {"id": 2},
            "model.v2.safetensors": None,
        })
        meta_store.save({"model.safetensors": {}, "model.v2.safetensors": {"notes": "v2"}})

        tree.move("model.safetensors", "Dest")

        assert (lora_root / "Dest" / "model.safetensors").exists()
        assert (lora_root / "Dest" / "model.civitai.info").exists()
        assert (lora_root / "model.v2.safetensors").exists()
        assert not (lora_root / "Dest" / "model.v2.safetensors").exists()
        assert meta_store.get("model.v2.safetensors").notes == "v2"

    def test_move_directory(self, tree, meta_store, lora_root):
        meta_store.write("a/b/c/y.safetensors", {"notes": "y"})

        assert tree.move("a/b", "Dest") == "Dest/b"
        assert (lora_root / "Dest" / "b" / "c" / "y.safetensors").exists()
        assert meta_store.read() == {"Dest/b/c/y.safetensors": {"notes": "y"}}

    def test_move_to_root(self, tree, lora_root):
        assert tree.move("a/b/x.safetensors", "") == "x.safetensors"
        assert (lora_root / "x.safetensors").exists()

    def test_move_into_itself(self, tree):
        with pytest.raises(ConflictError):
            tree.move("a", "a/b")

    def test_move_onto_existing(self, tree, lora_root):
        (lora_root / "Dest" / "mm.safetensors").write_bytes(b"x")
        with pytest.raises(ConflictError):
            tree.move("mm.safetensors", "Dest")

    def test_move_missing_destination(self, tree):
        with pytest.raises(NotFoundError):
            tree.move("mm.safetensors", "Nowhere")

    def test_move_traversal(self, tree, tmp_path):
        (tmp_path / "elsewhere").mkdir()
        with pytest.raises(PathTraversalError):
            tree.move("mm.safetensors", "../elsewhere")

    def test_move_batch_partial_failure(self, tree, meta_store, lora_root):
        meta_store.write("mm.safetensors", {"notes": "mm"})

        result = tree.move_batch(["mm.safetensors", "ghost.safetensors", "a/b/x.safetensors"], "Dest")

        assert result.success is True
        assert result.moved == 2
        assert result.failed == 1
        failed = [r for r in result.results if not r.success]
        assert failed[0].source == "ghost.safetensors"
        assert failed[0].error
        assert meta_store.read() == {"Dest/mm.safetensors": {"notes": "mm"}}

    def test_move_batch_all_failed(self, tree):
        result = tree.move_batch(["ghost1", "ghost2"], "Dest")
        assert result.success is False
        assert result.failed == 2
