"""SkillManager: the entry point the CLI and HTTP API call into.

Holds the in-memory skill set and target set for one process and wires the
parser, validator, syncer, importer and target registry together. Public
methods are serialized by a re-entrant lock.
"""

from __future__ import annotations

import logging
import os
import shutil
import threading
from collections.abc import Iterable
from pathlib import Path

from skillsync.config import EngineConfig
from skillsync.errors import (
    InvalidSkillNameError,
    SkillExistsError,
    SkillNotFoundError,
    SkillParseError,
)
from skillsync.importer.importer import DEFAULT_SCAN_DEPTH, Importer
from skillsync.importer.models import DiscoveredSkill, ImportResult, ImportSelection
from skillsync.migration import MigrationResult, migrate_legacy
from skillsync.skills import parser
from skillsync.skills.models import Invalid, NotValidated, Skill, Valid, Warned
from skillsync.skills.parser import SKILL_FILE_NAME, LoadFailure
from skillsync.skills.validator import Validator
from skillsync.sync.models import SyncResult, SyncStatus
from skillsync.sync.syncer import Syncer
from skillsync.targets.models import Target
from skillsync.targets.registry import TargetRegistry

logger = logging.getLogger(__name__)


class SkillManager:
    def __init__(self, config: EngineConfig) -> None:
        self.config = config
        self.validator = Validator(strict=config.strict)
        self.syncer = Syncer(config.skills_dir)
        self.importer = Importer(config.skills_dir, self.syncer)
        self.targets = TargetRegistry(config)
        self.load_errors: list[LoadFailure] = []
        self._skills: dict[str, Skill] = {}
        self._lock = threading.RLock()

    @property
    def skills_dir(self) -> Path:
        return self.config.skills_dir

    # Discovery

    def refresh(self) -> list[Skill]:
        """Re-read the repository and targets, then validate every skill."""
        with self._lock:
            self.skills_dir.mkdir(parents=True, exist_ok=True)
            skills, failures = parser.discover_skills(self.skills_dir)
            for skill in skills:
                skill.enabled = self.config.is_skill_enabled(skill.folder_name)
            self.validator.validate_all(skills)
            self._skills = {s.folder_name: s for s in skills}
            self.load_errors = failures
            self.targets.refresh()
            logger.info(
                "Loaded %d skills (%d failed) from %s", len(skills), len(failures), self.skills_dir
            )
            return self.list_skills()

    def list_skills(self) -> list[Skill]:
        with self._lock:
            return list(self._skills.values())

    def get_skill(self, name: str) -> Skill:
        with self._lock:
            try:
                return self._skills[name]
            except KeyError:
                raise SkillNotFoundError(name) from None

    def _reload(self, folder_name: str) -> Skill:
        skill = parser.parse_skill(self.skills_dir / folder_name)
        skill.enabled = self.config.is_skill_enabled(folder_name)
        self.validator.validate(skill)
        self._skills[folder_name] = skill
        self.load_errors = [f for f in self.load_errors if f.folder_name != folder_name]
        return skill

    # Validation

    def _validator(self, strict: bool | None) -> Validator:
        if strict is None or strict == self.validator.strict:
            return self.validator
        return Validator(strict=strict)

    def validate_skill(self, name: str, strict: bool | None = None) -> Skill:
        with self._lock:
            return self._validator(strict).validate(self.get_skill(name))

    def validate_all(self, strict: bool | None = None) -> list[Skill]:
        with self._lock:
            return self._validator(strict).validate_all(self._skills.values())

    # Repository edits

    def create_skill(self, name: str, description: str = "") -> Skill:
        folder_name = parser.to_kebab_case(name)
        with self._lock:
            skill = parser.create_skill(
                self.skills_dir, folder_name, description or parser.DEFAULT_DESCRIPTION
            )
            skill.enabled = self.config.is_skill_enabled(folder_name)
            self.validator.validate(skill)
            self._skills[folder_name] = skill
            logger.info("Created skill %s", folder_name)
            return skill

    def delete_skill(self, name: str) -> None:
        with self._lock:
            skill = self.get_skill(name)
            self._unlink_everywhere(name)
            shutil.rmtree(skill.path)
            del self._skills[name]
            self._forget(name)
            logger.info("Deleted skill %s", name)

    def _unlink_everywhere(self, folder_name: str) -> None:
        for target in self.targets.list():
            try:
                self.syncer.unlink(target, folder_name)
            except OSError as e:
                logger.warning("Failed to unlink %s from %s: %s", folder_name, target.id, e)

    def _forget(self, folder_name: str, renamed_to: str | None = None) -> None:
        """Drop or move per-skill settings in the config."""
        changed = False
        if folder_name in self.config.disabled_skills:
            self.config.set_skill_enabled(folder_name, True)
            if renamed_to is not None:
                self.config.set_skill_enabled(renamed_to, False)
            changed = True
        for settings in self.config.targets.values():
            if folder_name in settings.skill_overrides:
                value = settings.skill_overrides.pop(folder_name)
                if renamed_to is not None:
                    settings.skill_overrides[renamed_to] = value
                changed = True
        if changed:
            self.config.save()
            self.targets.refresh()

    def rename_skill(self, old_name: str, new_name: str) -> Skill:
        """Move a skill to a new folder, rewrite its header name and relink it."""
        if not parser.is_valid_skill_name(new_name):
            raise InvalidSkillNameError(new_name)
        with self._lock:
            skill = self.get_skill(old_name)
            if new_name == old_name:
                return skill
            new_dir = self.skills_dir / new_name
            if new_dir.exists() or new_dir.is_symlink():
                raise SkillExistsError(new_name)

            self._unlink_everywhere(old_name)
            os.rename(skill.path, new_dir)
            doc = new_dir / SKILL_FILE_NAME
            doc.write_text(
                parser.replace_header_name(doc.read_text(encoding="utf-8"), new_name),
                encoding="utf-8",
            )
            del self._skills[old_name]
            self._forget(old_name, renamed_to=new_name)
            renamed = self._reload(new_name)
            logger.info("Renamed skill %s -> %s", old_name, new_name)
            self.sync_all()
            return renamed

    def read_document(self, name: str) -> str:
        with self._lock:
            return parser.read_document(self.skills_dir / name)

    def save_document(self, name: str, content: str) -> Skill:
        """Write SKILL.md. A changed header name renames the skill to match."""
        with self._lock:
            skill_dir = self.skills_dir / name
            if not skill_dir.is_dir():
                raise SkillNotFoundError(name)
            (skill_dir / SKILL_FILE_NAME).write_text(content, encoding="utf-8")
            try:
                skill = self._reload(name)
            except SkillParseError as e:
                self._skills.pop(name, None)
                self.load_errors.append(LoadFailure(folder_name=name, message=str(e)))
                raise
            if (
                skill.name != name
                and parser.is_valid_skill_name(skill.name)
                and skill.name not in self._skills
            ):
                return self.rename_skill(name, skill.name)
            return skill

    def fix_skill(self, name: str) -> list[str]:
        """Normalize a skill's header in place. Works on skills that failed to load."""
        with self._lock:
            skill_dir = self.skills_dir / name
            text = parser.read_document(skill_dir)
            new_text, fixes = parser.fix_document(text, name)
            if fixes:
                (skill_dir / SKILL_FILE_NAME).write_text(new_text, encoding="utf-8")
                logger.info("Fixed %s: %s", name, "; ".join(fixes))
            self._reload(name)
            return fixes

    def set_skill_enabled(self, name: str, enabled: bool) -> Skill:
        with self._lock:
            skill = self.get_skill(name)
            self.config.set_skill_enabled(name, enabled)
            self.config.save()
            skill.enabled = enabled
            return skill

    # Targets

    def list_targets(self) -> list[Target]:
        with self._lock:
            return self.targets.list()

    def set_target_enabled(self, target_id: str, enabled: bool) -> Target:
        with self._lock:
            target = self.targets.set_enabled(target_id, enabled)
            self.config.save()
            return target

    def toggle_target(self, target_id: str) -> Target:
        with self._lock:
            target = self.targets.toggle(target_id)
            self.config.save()
            return target

    def add_custom_target(self, path: Path, name: str | None = None) -> Target:
        with self._lock:
            target = self.targets.add_custom(path, name)
            self.config.save()
            return target

    def remove_custom_target(self, target_id: str) -> Target:
        """Forget a custom target after removing the links it holds."""
        with self._lock:
            target = self.targets.get(target_id)
            self.syncer.unlink_all(target)
            self.targets.remove_custom(target_id)
            self.config.save()
            return target

    def set_skill_override(self, target_id: str, skill_name: str, enabled: bool) -> Target:
        with self._lock:
            target = self.targets.set_skill_override(target_id, skill_name, enabled)
            self.config.save()
            return target

    # Sync

    def _syncable(self) -> list[Skill]:
        skills = list(self._skills.values())
        if not self.config.validate_on_sync:
            return skills
        for skill in skills:
            if isinstance(skill.validation_status, NotValidated):
                self.validator.validate(skill)
        return [s for s in skills if s.is_syncable]

    def sync_target(self, target_id: str, dry_run: bool = False) -> SyncResult:
        with self._lock:
            return self.syncer.sync(self.targets.get(target_id), self._syncable(), dry_run=dry_run)

    def sync_all(self, dry_run: bool = False) -> list[SyncResult]:
        with self._lock:
            return self.syncer.sync_all(self.targets.enabled(), self._syncable(), dry_run=dry_run)

    def target_status(self, target_id: str) -> SyncStatus:
        with self._lock:
            return self.syncer.status(self.targets.get(target_id), self._syncable())

    # Import

    def scan_importable(self) -> list[DiscoveredSkill]:
        with self._lock:
            return self.importer.scan_targets(self.targets.list(), self._skills)

    def scan_folder(self, path: Path, max_depth: int = DEFAULT_SCAN_DEPTH) -> list[DiscoveredSkill]:
        with self._lock:
            return self.importer.scan_folder(path.expanduser(), self._skills, max_depth=max_depth)

    def import_selections(
        self, selections: Iterable[ImportSelection], sync: bool = True
    ) -> ImportResult:
        """Import a batch, then reload the repository and relink every enabled target."""
        with self._lock:
            result = self.importer.import_batch(selections)
            if result.imported:
                self.refresh()
                if sync:
                    result.synced_to = [r.target_id for r in self.sync_all() if r.ok]
            return result

    # Misc

    def stats(self) -> dict[str, int]:
        with self._lock:
            skills = list(self._skills.values())
            targets = self.targets.list()
            return {
                "total": len(skills),
                "valid": sum(isinstance(s.validation_status, Valid) for s in skills),
                "warning": sum(isinstance(s.validation_status, Warned) for s in skills),
                "invalid": sum(isinstance(s.validation_status, Invalid) for s in skills),
                "not_validated": sum(
                    isinstance(s.validation_status, NotValidated) for s in skills
                ),
                "enabled": sum(s.enabled for s in skills),
                "load_errors": len(self.load_errors),
                "targets": len(targets),
                "enabled_targets": sum(t.enabled for t in targets),
            }

    def migrate_legacy(self) -> MigrationResult:
        with self._lock:
            result = migrate_legacy(self.config.legacy_skills_dir, self.skills_dir)
            if result.migrated:
                self.refresh()
            return result
