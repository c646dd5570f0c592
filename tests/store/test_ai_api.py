"""
API Tests for AI Endpoints

Tests cover:
- POST /api/loras/analyze-tags
- POST /api/prompts/decompose
- POST /api/wildcards/expand
- Status codes for missing keys, safety blocks and provider failures
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.store.api import create_store_routers, get_store
from tests.helpers.fixtures import failed


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def client(test_store_context):
    app = FastAPI()
    for prefix, router in create_store_routers():
        app.include_router(router, prefix=f"/api{prefix}")
    app.dependency_overrides[get_store] = lambda: test_store_context.store
    return TestClient(app)


# =============================================================================
# Tag Analysis
# =============================================================================

class TestAnalyzeTags:
    """Tests for POST /api/loras/analyze-tags."""

    def test_success(self, client, fake_provider):
        fake_provider.default = {
            "base": ["alice", "blue eyes"],
            "variations": [{"name": "Armor", "prompts": ["armor", "sword"]}],
        }

        r = client.post("/api/loras/analyze-tags", json={"triggerWords": ["alice", "blue eyes", "armor", "sword"]})

        assert r.status_code == 200
        assert r.json() == {
            "base": ["alice", "blue eyes"],
            "variations": [{"name": "Armor", "prompts": ["armor", "sword"]}],
        }

    def test_empty_words_skip_provider(self, client, fake_provider):
        r = client.post("/api/loras/analyze-tags", json={"triggerWords": ["  "]})

        assert r.json() == {"base": [], "variations": []}
        assert fake_provider.prompts == []

    def test_not_configured(self, client, fake_provider):
        fake_provider.available = False
        r = client.post("/api/loras/analyze-tags", json={"triggerWords": ["alice"]})
        assert r.status_code == 400

    def test_safety_block(self, client, fake_provider):
        fake_provider.default = failed("Response blocked by safety filter", blocked=True)
        r = client.post("/api/loras/analyze-tags", json={"triggerWords": ["alice"]})
        assert r.status_code == 422

    def test_provider_failure(self, client, fake_provider):
        fake_provider.default = failed("API 500: boom")
        r = client.post("/api/loras/analyze-tags", json={"triggerWords": ["alice"]})
        assert r.status_code == 502
        assert "boom" in r.json()["detail"]

    def test_unusable_output(self, client, fake_provider):
        fake_provider.default = {"unexpected": True}
        r = client.post("/api/loras/analyze-tags", json={"triggerWords": ["alice"]})
        assert r.status_code == 502


# =============================================================================
# Prompt Decomposition
# =============================================================================

class TestDecompose:
    """Tests for POST /api/prompts/decompose."""

    def test_lines_and_text_are_combined(self, client, fake_provider):
        fake_provider.default = lambda prompt: [
            {"character": "alice", "clothing": "dress"},
            {"character": "bob"},
        ]

        r = client.post("/api/prompts/decompose", json={"lines": ["alice in a dress"], "text": "bob\n\n"})

        body = r.json()
        assert r.status_code == 200
        assert body["total"] == 2
        assert body["skipped"] == 0
        assert body["cancelled"] is False
        assert [row["summary"] for row in body["rows"]] == ["alice, dress", "bob"]
        assert all(len(row["id"]) == 9 for row in body["rows"])

    def test_not_configured(self, client, fake_provider):
        fake_provider.available = False
        r = client.post("/api/prompts/decompose", json={"lines": ["x"]})
        assert r.status_code == 400


# =============================================================================
# Wildcard Expansion
# =============================================================================

class TestExpand:
    """Tests for POST /api/wildcards/expand."""

    def test_expand(self, client, fake_provider, test_store_context):
        (test_store_context.wildcard_dir / "colors.txt").write_text("red\n")
        fake_provider.default = "green\nblue"

        r = client.post("/api/wildcards/expand", json={"path": "colors.txt", "directive": "cool tones"})

        assert r.status_code == 200
        assert r.json()["added"] == 2
        assert (test_store_context.wildcard_dir / "colors.txt").read_text() == "red\ngreen\nblue\n"

    def test_empty_directive(self, client, test_store_context):
        (test_store_context.wildcard_dir / "colors.txt").write_text("red\n")
        r = client.post("/api/wildcards/expand", json={"path": "colors.txt", "directive": "  "})
        assert r.status_code == 400

    def test_failure_leaves_file_untouched(self, client, fake_provider, test_store_context):
        path = test_store_context.wildcard_dir / "colors.txt"
        path.write_text("red\n")
        fake_provider.default = failed("timeout")

        r = client.post("/api/wildcards/expand", json={"path": "colors.txt", "directive": "more"})

        assert r.status_code == 502
        assert path.read_text() == "red\n"
