"""Scan external locations for skills and copy selected ones into the repository.

Import is a copy: the source directory is never modified or removed.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from collections.abc import Iterable, Mapping
from pathlib import Path

from skillsync.errors import SkillImportError, SkillParseError
from skillsync.importer.models import (
    ConflictInfo,
    ConflictResolution,
    DiscoveredSkill,
    ImportedSkill,
    ImportFailure,
    ImportResult,
    ImportSelection,
)
from skillsync.skills.models import Skill
from skillsync.skills.parser import (
    SKILL_FILE_NAME,
    fix_document,
    is_valid_skill_name,
    parse_skill_lenient,
    to_kebab_case,
)
from skillsync.sync.syncer import Syncer
from skillsync.targets.models import Target

logger = logging.getLogger(__name__)

DEFAULT_SCAN_DEPTH = 5
FOLDER_SOURCE = "folder"

SKIP_DIRS = {
    "node_modules",
    ".git",
    "dist",
    "build",
    "__pycache__",
    ".venv",
    "venv",
    ".tox",
    "target",
}


def candidate_name(skill: Skill) -> str:
    """Repository name an external skill would land under: its header name, else its folder."""
    return skill.name.strip() or skill.folder_name


class Importer:
    def __init__(self, skills_dir: Path, syncer: Syncer) -> None:
        self.skills_dir = skills_dir
        self._syncer = syncer

    # Scanning

    def scan_target(self, target: Target, existing: Mapping[str, Skill]) -> list[DiscoveredSkill]:
        """Unmanaged skill directories directly inside a target directory."""
        target_dir = Path(target.skills_path)
        if not target_dir.is_dir():
            return []
        found: list[DiscoveredSkill] = []
        try:
            entries = sorted(target_dir.iterdir())
        except OSError as e:
            logger.warning("Cannot scan target %s: %s", target.id, e)
            return []
        for entry in entries:
            if entry.name.startswith(".") or self._syncer.is_managed(entry):
                continue
            if not entry.is_dir() or not (entry / SKILL_FILE_NAME).is_file():
                continue
            candidate = self._discover(entry, target.id, existing)
            if candidate is not None:
                found.append(candidate)
        return found

    def scan_targets(
        self, targets: Iterable[Target], existing: Mapping[str, Skill]
    ) -> list[DiscoveredSkill]:
        found: list[DiscoveredSkill] = []
        for target in targets:
            if target.enabled:
                found.extend(self.scan_target(target, existing))
        return found

    def scan_folder(
        self,
        root: Path,
        existing: Mapping[str, Skill],
        max_depth: int = DEFAULT_SCAN_DEPTH,
    ) -> list[DiscoveredSkill]:
        """Walk root up to max_depth levels for directories holding a SKILL.md."""
        found: list[DiscoveredSkill] = []
        for directory in self._walk(root, max_depth):
            candidate = self._discover(directory, FOLDER_SOURCE, existing)
            if candidate is not None:
                found.append(candidate)
        return found

    def _walk(self, root: Path, max_depth: int) -> list[Path]:
        found: list[Path] = []
        repo = self.skills_dir.resolve()

        def visit(directory: Path, depth: int) -> None:
            if directory.resolve().is_relative_to(repo):
                return
            if (directory / SKILL_FILE_NAME).is_file():
                # Skill directories are leaves
                found.append(directory)
                return
            if depth >= max_depth:
                return
            try:
                entries = sorted(directory.iterdir())
            except OSError as e:
                logger.warning("Cannot scan %s: %s", directory, e)
                return
            for entry in entries:
                if entry.name.startswith(".") or entry.name in SKIP_DIRS:
                    continue
                if entry.is_symlink() or not entry.is_dir():
                    continue
                visit(entry, depth + 1)

        if root.is_dir():
            visit(root, 0)
        return found

    def _discover(
        self, directory: Path, source: str, existing: Mapping[str, Skill]
    ) -> DiscoveredSkill | None:
        try:
            skill = parse_skill_lenient(directory)
        except (SkillParseError, OSError, UnicodeDecodeError) as e:
            logger.warning("Skipping %s: %s", directory, e)
            return None

        name = candidate_name(skill)
        conflict = None
        # Fixing the name on import may land on an existing skill
        clash = next((n for n in (name, to_kebab_case(name)) if n in existing), None)
        if clash is not None:
            current = existing[clash]
            conflict = ConflictInfo(
                existing_folder_name=current.folder_name,
                existing_description=current.description,
                existing_path=current.path,
            )

        fixes = _preview_fixes(directory, skill)
        return DiscoveredSkill(
            name=name,
            folder_name=skill.folder_name,
            description=skill.description,
            source_path=str(directory),
            source=source,
            has_scripts=skill.has_scripts,
            has_references=skill.has_references,
            has_assets=skill.has_assets,
            parse_errors=list(skill.parse_errors),
            needs_fixes=bool(fixes),
            fixes_preview=fixes,
            conflict=conflict,
        )

    # Importing

    def import_skill(self, selection: ImportSelection) -> ImportedSkill | None:
        """Copy one selection into the repository. Returns None when skipped.

        Raises SkillImportError when the selection cannot be applied.
        """
        source = Path(selection.source_path).expanduser()
        if not (source / SKILL_FILE_NAME).is_file():
            raise SkillImportError(f"No {SKILL_FILE_NAME} in {source}")
        if source.resolve().is_relative_to(self.skills_dir.resolve()):
            raise SkillImportError(f"{source} is already in the repository")

        skill = parse_skill_lenient(source)
        dest_name = selection.name or candidate_name(skill)
        if selection.apply_fixes and not is_valid_skill_name(dest_name):
            dest_name = to_kebab_case(dest_name)
        _check_folder_name(dest_name)

        dest = self.skills_dir / dest_name
        exists = dest.exists() or dest.is_symlink()
        if selection.resolution == ConflictResolution.SKIP:
            logger.info("Skipped import of %s", dest_name)
            return None
        if exists and selection.resolution != ConflictResolution.OVERWRITE:
            raise SkillImportError(
                f"Skill '{dest_name}' already exists; choose skip or overwrite"
            )

        self.skills_dir.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=".import-", dir=self.skills_dir))
        try:
            staged = staging / dest_name
            shutil.copytree(source, staged, symlinks=True)
            fixes = _apply_fixes(staged, dest_name) if selection.apply_fixes else []
            _swap_into_place(staged, dest, staging / ".previous", exists)
        except (OSError, shutil.Error) as e:
            raise SkillImportError(f"Failed to import {source}: {e}") from e
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        logger.info("Imported %s from %s%s", dest_name, source, " (overwrote)" if exists else "")
        return ImportedSkill(
            name=dest_name,
            path=str(dest),
            source_path=str(source),
            overwritten=exists,
            fixes_applied=fixes,
        )

    def import_batch(self, selections: Iterable[ImportSelection]) -> ImportResult:
        """Import each selection independently; failures are collected, not raised."""
        result = ImportResult()
        for selection in selections:
            label = selection.name or Path(selection.source_path).name
            try:
                imported = self.import_skill(selection)
            except (SkillImportError, SkillParseError, OSError) as e:
                logger.warning("Import of %s failed: %s", label, e)
                result.errors.append(ImportFailure(name=label, message=str(e)))
                continue
            if imported is None:
                result.skipped.append(label)
            else:
                result.imported.append(imported)
        logger.info(
            "Import finished: %d imported, %d skipped, %d errors",
            result.imported_count,
            result.skipped_count,
            result.error_count,
        )
        return result


def _check_folder_name(name: str) -> None:
    if not name or name in (".", "..") or name.startswith(".") or "/" in name or "\\" in name:
        raise SkillImportError(f"Cannot use '{name}' as a skill folder name")


def _preview_fixes(directory: Path, skill: Skill) -> list[str]:
    """What apply_fixes would change, without touching the source."""
    fixes: list[str] = []
    name = candidate_name(skill)
    if not is_valid_skill_name(name):
        fixes.append(f"Rename '{name}' to '{to_kebab_case(name)}'")
    try:
        text = (directory / SKILL_FILE_NAME).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return fixes
    _, header_fixes = fix_document(text, to_kebab_case(name))
    fixes.extend(header_fixes)
    return fixes


def _apply_fixes(skill_dir: Path, dest_name: str) -> list[str]:
    """Rewrite the staged SKILL.md header so it parses and names its folder."""
    doc = skill_dir / SKILL_FILE_NAME
    new_text, fixes = fix_document(doc.read_text(encoding="utf-8"), dest_name)
    if fixes:
        doc.write_text(new_text, encoding="utf-8")
    return fixes


def _swap_into_place(staged: Path, dest: Path, backup: Path, exists: bool) -> None:
    """Move staged into dest, keeping the old entry until the new one is in place."""
    if not exists:
        os.replace(staged, dest)
        return
    os.replace(dest, backup)
    try:
        os.replace(staged, dest)
    except OSError:
        os.replace(backup, dest)
        raise
