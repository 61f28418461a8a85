"""Tests for importer/importer.py: scanning, conflicts, copying, fixes."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from skillsync.errors import SkillImportError
from skillsync.importer.importer import Importer
from skillsync.importer.models import ConflictResolution, ImportSelection
from skillsync.skills.parser import discover_skills, parse_skill
from skillsync.sync.syncer import Syncer
from skillsync.targets.models import Target


@pytest.fixture
def importer(repo: Path) -> Importer:
    return Importer(repo, Syncer(repo))


def _existing(repo: Path) -> dict:
    skills, _ = discover_skills(repo)
    return {s.folder_name: s for s in skills}


def _target_dir(target: Target) -> Path:
    path = Path(target.skills_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


class TestScanTarget:
    def test_conflict_flagged_with_existing_description(
        self, repo, importer, target, write_skill
    ):
        write_skill(repo, "gamma", {"name": "gamma", "description": "Repository gamma"})
        write_skill(_target_dir(target), "gamma", {"name": "gamma", "description": "Tool gamma"})
        candidates = importer.scan_target(target, _existing(repo))
        assert len(candidates) == 1
        gamma = candidates[0]
        assert gamma.name == "gamma"
        assert gamma.has_conflict is True
        assert gamma.conflict is not None
        assert gamma.conflict.existing_description == "Repository gamma"
        assert gamma.description == "Tool gamma"
        assert gamma.source == "tool"
        assert gamma.default_resolution == ConflictResolution.SKIP

    def test_no_conflict_when_absent(self, repo, importer, target, write_skill):
        write_skill(_target_dir(target), "delta")
        [delta] = importer.scan_target(target, _existing(repo))
        assert delta.has_conflict is False
        assert delta.default_resolution == ConflictResolution.IMPORT

    def test_managed_links_excluded(self, repo, importer, target, write_skill):
        write_skill(repo, "alpha")
        os.symlink(repo / "alpha", _target_dir(target) / "alpha")
        assert importer.scan_target(target, _existing(repo)) == []

    def test_foreign_symlinked_skill_included(self, repo, importer, target, write_skill, tmp_path):
        outside = write_skill(tmp_path / "outside", "ext")
        os.symlink(outside, _target_dir(target) / "ext")
        [candidate] = importer.scan_target(target, _existing(repo))
        assert candidate.name == "ext"

    def test_ignores_files_and_dirs_without_document(self, repo, importer, target):
        target_dir = _target_dir(target)
        (target_dir / "README.md").write_text("x")
        (target_dir / "empty").mkdir()
        assert importer.scan_target(target, {}) == []

    def test_missing_target_directory(self, importer, target):
        assert importer.scan_target(target, {}) == []

    def test_disabled_targets_not_scanned(self, importer, target, write_skill):
        write_skill(_target_dir(target), "delta")
        target.enabled = False
        assert importer.scan_targets([target], {}) == []

    def test_malformed_candidate_still_listed(self, importer, target):
        bad = _target_dir(target) / "broken"
        bad.mkdir()
        (bad / "SKILL.md").write_text("---\nname: [oops\n---\nbody\n")
        [candidate] = importer.scan_target(target, {})
        assert candidate.name == "broken"
        assert candidate.parse_errors
        assert candidate.needs_fixes is True


class TestScanFolder:
    def test_finds_nested_skills(self, importer, tmp_path, write_skill):
        root = tmp_path / "src"
        write_skill(root / "a" / "b", "deep-one")
        write_skill(root, "top")
        found = importer.scan_folder(root, {})
        assert sorted(c.name for c in found) == ["deep-one", "top"]
        assert all(c.source == "folder" for c in found)

    def test_root_itself_can_be_a_skill(self, importer, tmp_path, write_skill):
        skill_dir = write_skill(tmp_path, "solo")
        [candidate] = importer.scan_folder(skill_dir, {})
        assert candidate.name == "solo"

    def test_depth_limit(self, importer, tmp_path, write_skill):
        root = tmp_path / "src"
        write_skill(root / "1" / "2" / "3", "too-deep")
        assert importer.scan_folder(root, {}, max_depth=3) == []
        assert [c.name for c in importer.scan_folder(root, {}, max_depth=4)] == ["too-deep"]

    def test_skips_hidden_and_vendor_dirs(self, importer, tmp_path, write_skill):
        root = tmp_path / "src"
        write_skill(root / ".hidden", "secret")
        write_skill(root / "node_modules", "vendored")
        assert importer.scan_folder(root, {}) == []

    def test_does_not_descend_into_skills(self, importer, tmp_path, write_skill):
        outer = write_skill(tmp_path / "src", "outer")
        write_skill(outer / "examples", "inner")
        assert [c.name for c in importer.scan_folder(tmp_path / "src", {})] == ["outer"]

    def test_skips_repository(self, repo, importer, write_skill):
        write_skill(repo, "alpha")
        assert importer.scan_folder(repo.parent, _existing(repo)) == []

    def test_fix_preview_for_bad_name(self, importer, tmp_path, write_skill):
        write_skill(tmp_path / "src", "MySkill", {"name": "My Skill", "description": "d"})
        [candidate] = importer.scan_folder(tmp_path / "src", {})
        assert candidate.needs_fixes is True
        assert "Rename 'My Skill' to 'my-skill'" in candidate.fixes_preview

    def test_conflict_on_fixed_name(self, repo, importer, tmp_path, write_skill):
        write_skill(repo, "my-skill", {"name": "my-skill", "description": "Repository copy"})
        write_skill(tmp_path / "src", "My_Skill", {"name": "My_Skill", "description": "d"})
        [candidate] = importer.scan_folder(tmp_path / "src", _existing(repo))
        assert "Rename 'My_Skill' to 'my-skill'" in candidate.fixes_preview
        assert candidate.has_conflict is True
        assert candidate.conflict.existing_folder_name == "my-skill"
        assert candidate.default_resolution == ConflictResolution.SKIP

    def test_fix_preview_does_not_modify_source(self, importer, tmp_path, write_skill):
        skill_dir = write_skill(tmp_path / "src", "x", {"name": "x"})
        before = (skill_dir / "SKILL.md").read_text()
        [candidate] = importer.scan_folder(tmp_path / "src", {})
        assert "Added missing description field" in candidate.fixes_preview
        assert (skill_dir / "SKILL.md").read_text() == before


class TestImportSkill:
    def test_copies_tree_and_keeps_source(self, repo, importer, tmp_path, write_skill):
        source = write_skill(tmp_path / "ext", "new-skill")
        (source / "scripts").mkdir()
        (source / "scripts" / "run.sh").write_text("echo hi")
        imported = importer.import_skill(ImportSelection(source_path=str(source)))
        assert imported is not None
        assert imported.name == "new-skill"
        assert imported.overwritten is False
        assert (repo / "new-skill" / "scripts" / "run.sh").read_text() == "echo hi"
        assert (source / "SKILL.md").exists()
        assert (source / "scripts" / "run.sh").exists()

    def test_no_staging_dirs_left_behind(self, repo, importer, tmp_path, write_skill):
        importer.import_skill(ImportSelection(source_path=str(write_skill(tmp_path / "e", "x"))))
        assert [p.name for p in repo.iterdir()] == ["x"]

    def test_import_into_existing_requires_resolution(self, repo, importer, tmp_path, write_skill):
        write_skill(repo, "gamma")
        source = write_skill(tmp_path / "ext", "gamma")
        with pytest.raises(SkillImportError, match="already exists"):
            importer.import_skill(ImportSelection(source_path=str(source)))

    def test_skip_leaves_repository_unchanged(self, repo, importer, tmp_path, write_skill):
        write_skill(repo, "gamma", {"name": "gamma", "description": "Repository gamma"})
        before = (repo / "gamma" / "SKILL.md").read_text()
        source = write_skill(tmp_path / "ext", "gamma", {"name": "gamma", "description": "Tool"})
        selection = ImportSelection(source_path=str(source), resolution=ConflictResolution.SKIP)
        assert importer.import_skill(selection) is None
        assert (repo / "gamma" / "SKILL.md").read_text() == before

    def test_overwrite_replaces_content(self, repo, importer, tmp_path, write_skill):
        write_skill(repo, "gamma", {"name": "gamma", "description": "Repository gamma"})
        (repo / "gamma" / "old.txt").write_text("old")
        source = write_skill(tmp_path / "ext", "gamma", {"name": "gamma", "description": "Tool gamma"})
        selection = ImportSelection(
            source_path=str(source), resolution=ConflictResolution.OVERWRITE
        )
        imported = importer.import_skill(selection)
        assert imported is not None and imported.overwritten is True
        assert parse_skill(repo / "gamma").description == "Tool gamma"
        assert not (repo / "gamma" / "old.txt").exists()
        assert (source / "SKILL.md").exists()

    def test_apply_fixes_normalizes_name_and_header(self, repo, importer, tmp_path, write_skill):
        source = write_skill(tmp_path / "ext", "My Skill", {"name": "My Skill"})
        selection = ImportSelection(source_path=str(source), apply_fixes=True)
        imported = importer.import_skill(selection)
        assert imported is not None
        assert imported.name == "my-skill"
        assert imported.fixes_applied
        skill = parse_skill(repo / "my-skill")
        assert skill.name == "my-skill"
        assert skill.description == "No description provided"
        assert "description" not in (source / "SKILL.md").read_text()

    def test_explicit_name(self, repo, importer, tmp_path, write_skill):
        source = write_skill(tmp_path / "ext", "orig")
        selection = ImportSelection(source_path=str(source), name="renamed", apply_fixes=True)
        importer.import_skill(selection)
        assert parse_skill(repo / "renamed").name == "renamed"

    def test_rejects_unsafe_folder_name(self, importer, tmp_path, write_skill):
        source = write_skill(tmp_path / "ext", "ok")
        with pytest.raises(SkillImportError):
            importer.import_skill(ImportSelection(source_path=str(source), name="../escape"))

    def test_rejects_source_inside_repository(self, repo, importer, write_skill):
        write_skill(repo, "alpha")
        selection = ImportSelection(
            source_path=str(repo / "alpha"), resolution=ConflictResolution.OVERWRITE
        )
        with pytest.raises(SkillImportError, match="already in the repository"):
            importer.import_skill(selection)

    def test_missing_source(self, importer, tmp_path):
        with pytest.raises(SkillImportError):
            importer.import_skill(ImportSelection(source_path=str(tmp_path / "nowhere")))


class TestImportBatch:
    def test_failures_isolated(self, repo, importer, tmp_path, write_skill):
        write_skill(repo, "taken")
        ok_one = write_skill(tmp_path / "ext", "one")
        taken = write_skill(tmp_path / "ext", "taken")
        skipped = write_skill(tmp_path / "ext2", "taken")
        ok_two = write_skill(tmp_path / "ext", "two")
        result = importer.import_batch(
            [
                ImportSelection(source_path=str(ok_one)),
                ImportSelection(source_path=str(taken)),
                ImportSelection(source_path=str(skipped), resolution=ConflictResolution.SKIP),
                ImportSelection(source_path=str(ok_two)),
            ]
        )
        assert [i.name for i in result.imported] == ["one", "two"]
        assert result.skipped == ["taken"]
        assert result.error_count == 1
        assert result.errors[0].name == "taken"
        assert result.imported_count == 2
        assert result.skipped_count == 1
