"""Tests for the HTTP API: skills, targets, sync, import and system routes."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from starlette.testclient import TestClient

from skillsync import __version__
from skillsync.config import EngineConfig
from skillsync.server.app import create_app


@pytest.fixture
def claude_dir(home: Path) -> Path:
    (home / ".claude").mkdir()
    return home / ".claude" / "skills"


@pytest.fixture
def client(config: EngineConfig, claude_dir: Path) -> Iterator[TestClient]:
    with TestClient(create_app(config)) as c:
        yield c


class TestSystemRoutes:
    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "version": __version__}

    def test_stats(self, config, write_skill, claude_dir):
        write_skill(config.skills_dir, "alpha")
        with TestClient(create_app(config)) as client:
            data = client.get("/api/stats").json()
        assert data["total"] == 1
        assert data["valid"] == 1
        assert data["targets"] == 1

    def test_migrate(self, config, write_skill):
        write_skill(config.legacy_skills_dir, "old-one")
        with TestClient(create_app(config)) as client:
            data = client.post("/api/migrate").json()
            assert data["migrated"] is True
            assert data["skill_names"] == ["old-one"]
            assert client.get("/api/skills/old-one").status_code == 200


class TestSkillRoutes:
    def test_list_with_load_errors(self, config, write_skill, claude_dir):
        write_skill(config.skills_dir, "alpha")
        write_skill(config.skills_dir, "wrong", {"name": "other", "description": "x" * 30})
        (config.skills_dir / "broken").mkdir()
        (config.skills_dir / "broken" / "SKILL.md").write_text("no header")
        with TestClient(create_app(config)) as client:
            data = client.get("/api/skills").json()
            assert data["count"] == 2
            assert [e["folder_name"] for e in data["load_errors"]] == ["broken"]
            valid = client.get("/api/skills?status=valid").json()
            assert [s["folder_name"] for s in valid["skills"]] == ["alpha"]
            invalid = client.get("/api/skills?status=invalid").json()
            assert [s["folder_name"] for s in invalid["skills"]] == ["wrong"]
            assert client.get("/api/skills?status=bogus").status_code == 400

    def test_create_and_get(self, client):
        resp = client.post(
            "/api/skills", json={"name": "New Skill", "description": "Handles new things well"}
        )
        assert resp.status_code == 201
        assert resp.json()["folder_name"] == "new-skill"

        resp = client.get("/api/skills/new-skill")
        assert resp.status_code == 200
        data = resp.json()
        assert data["description"] == "Handles new things well"
        assert data["content"].startswith("---\n")
        assert data["is_syncable"] is True

    def test_create_requires_name(self, client):
        assert client.post("/api/skills", json={}).status_code == 400
        assert client.post("/api/skills", content=b"not json").status_code == 400

    def test_create_duplicate_conflicts(self, client):
        client.post("/api/skills", json={"name": "dup"})
        resp = client.post("/api/skills", json={"name": "dup"})
        assert resp.status_code == 409
        assert "error" in resp.json()

    def test_get_missing(self, client):
        resp = client.get("/api/skills/nope")
        assert resp.status_code == 404

    def test_rename(self, client):
        client.post("/api/skills", json={"name": "before"})
        resp = client.post("/api/skills/before/rename", json={"new_name": "after"})
        assert resp.status_code == 200
        assert resp.json()["folder_name"] == "after"
        assert client.get("/api/skills/before").status_code == 404

    def test_rename_invalid_name(self, client):
        client.post("/api/skills", json={"name": "before"})
        resp = client.post("/api/skills/before/rename", json={"new_name": "Not Kebab"})
        assert resp.status_code == 400

    def test_save_document(self, client):
        client.post("/api/skills", json={"name": "doc", "description": "Original description here"})
        content = client.get("/api/skills/doc").json()["content"]
        resp = client.put(
            "/api/skills/doc/document",
            json={"content": content.replace("Original", "Edited")},
        )
        assert resp.status_code == 200
        assert resp.json()["description"] == "Edited description here"

    def test_fix(self, client, config):
        broken = config.skills_dir / "broken"
        broken.mkdir()
        (broken / "SKILL.md").write_text("---\nname: broken\n")
        resp = client.post("/api/skills/broken/fix")
        assert resp.status_code == 200
        assert resp.json()["fixed"] is True
        assert client.get("/api/skills/broken").status_code == 200

    def test_enabled(self, client, config):
        client.post("/api/skills", json={"name": "flip"})
        resp = client.put("/api/skills/flip/enabled", json={"enabled": False})
        assert resp.json()["enabled"] is False
        assert config.disabled_skills == ["flip"]
        assert client.put("/api/skills/flip/enabled", json={"enabled": "no"}).status_code == 400

    def test_validate(self, config, write_skill, claude_dir):
        write_skill(config.skills_dir, "short", {"name": "short", "description": "tiny"})
        with TestClient(create_app(config)) as client:
            data = client.post("/api/skills/validate", json={}).json()
            assert data["valid"] is True
            assert data["skills"][0]["validation_status"]["state"] == "warning"
            strict = client.post("/api/skills/validate", json={"name": "short", "strict": True})
            assert strict.json()["valid"] is False
            assert strict.json()["invalid_count"] == 1

    def test_delete(self, client):
        client.post("/api/skills", json={"name": "gone"})
        assert client.delete("/api/skills/gone").json() == {"deleted": "gone"}
        assert client.delete("/api/skills/gone").status_code == 404


class TestTargetRoutes:
    def test_list(self, client):
        data = client.get("/api/targets").json()
        assert data["count"] == 1
        assert data["targets"][0]["id"] == "claude-code"

    def test_toggle(self, client):
        resp = client.post("/api/targets/claude-code/toggle")
        assert resp.json()["enabled"] is False
        assert client.post("/api/targets/nope/toggle").status_code == 404

    def test_custom_target(self, client, tmp_path):
        resp = client.post("/api/targets", json={"path": str(tmp_path / "mine")})
        assert resp.status_code == 201
        target_id = resp.json()["id"]
        assert target_id == "folder-mine"
        again = client.post("/api/targets", json={"path": str(tmp_path / "mine")})
        assert again.status_code == 409
        assert client.delete(f"/api/targets/{target_id}").json() == {"removed": target_id}

    def test_remove_detected_target_rejected(self, client):
        assert client.delete("/api/targets/claude-code").status_code == 400

    def test_override(self, client):
        resp = client.put("/api/targets/claude-code/overrides/alpha", json={"enabled": False})
        assert resp.json()["skill_overrides"] == {"alpha": False}

    def test_sync_and_status(self, config, write_skill, claude_dir):
        write_skill(config.skills_dir, "alpha")
        with TestClient(create_app(config)) as client:
            status = client.get("/api/targets/claude-code/status").json()
            assert status["missing"] == ["alpha"]

            dry = client.post("/api/sync?dry_run=true").json()
            assert dry["created"] == 1
            assert not (claude_dir / "alpha").exists()

            data = client.post("/api/sync").json()
            assert data["created"] == 1
            assert data["errors"] == 0
            assert (claude_dir / "alpha").is_symlink()

            one = client.post("/api/sync/claude-code").json()
            assert one["unchanged"] == ["alpha"]
            assert client.get("/api/targets/claude-code/status").json()["is_synced"] is True


class TestImportRoutes:
    def test_candidates_and_apply(self, config, write_skill, claude_dir):
        write_skill(config.skills_dir, "gamma")
        write_skill(claude_dir, "gamma", {"name": "gamma", "description": "Tool copy of gamma"})
        write_skill(claude_dir, "fresh")
        with TestClient(create_app(config)) as client:
            data = client.get("/api/import/candidates").json()
            assert data["count"] == 2
            assert data["conflicts"] == 1
            by_name = {c["name"]: c for c in data["candidates"]}
            assert by_name["gamma"]["default_resolution"] == "skip"
            assert by_name["fresh"]["default_resolution"] == "import"

            resp = client.post(
                "/api/import",
                json={
                    "selections": [
                        {"source_path": by_name["fresh"]["source_path"]},
                        {"source_path": by_name["gamma"]["source_path"], "resolution": "skip"},
                    ]
                },
            )
            result = resp.json()
            assert result["imported_count"] == 1
            assert result["skipped"] == ["gamma"]
            assert client.get("/api/skills/fresh").status_code == 200

    def test_bad_selection(self, client):
        resp = client.post(
            "/api/import", json={"selections": [{"source_path": "/x", "resolution": "maybe"}]}
        )
        assert resp.status_code == 422
        assert client.post("/api/import", json={}).status_code == 400

    def test_scan_folder(self, client, write_skill, tmp_path):
        write_skill(tmp_path / "downloads", "found-it")
        resp = client.post("/api/import/scan-folder", json={"path": str(tmp_path / "downloads")})
        assert [c["name"] for c in resp.json()["candidates"]] == ["found-it"]

    def test_scan_folder_rejects_missing_path(self, client, tmp_path):
        resp = client.post("/api/import/scan-folder", json={"path": str(tmp_path / "nope")})
        assert resp.status_code == 400
        resp = client.post(
            "/api/import/scan-folder", json={"path": str(tmp_path), "depth": -1}
        )
        assert resp.status_code == 400
