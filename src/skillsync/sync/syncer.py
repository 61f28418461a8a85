"""Symlink reconciliation between the skill repository and target directories.

Only managed entries are ever created or removed. An entry is managed when
it is a symlink whose destination lies under the resolved repository root.
The destination's final component is not followed, so a link to a
repository folder that is itself a symlink still counts as managed.
Regular files, real directories and links pointing elsewhere are left
alone even when their name matches a skill.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Iterable
from pathlib import Path

from skillsync.skills.models import Skill
from skillsync.sync.models import SyncError, SyncResult, SyncStatus
from skillsync.targets.models import Target

logger = logging.getLogger(__name__)


class Syncer:
    def __init__(self, skills_dir: Path) -> None:
        self.skills_dir = skills_dir
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, target_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(target_id)
            if lock is None:
                lock = self._locks[target_id] = threading.Lock()
            return lock

    def source_for(self, skill: Skill) -> Path:
        """Path a skill's links point at: the repository folder, not where it leads."""
        return self.skills_dir.resolve() / skill.folder_name

    def is_managed(self, entry: Path) -> bool:
        if not entry.is_symlink():
            return False
        try:
            root = self.skills_dir.resolve()
            candidates = (_link_destination(entry), entry.resolve())
        except (OSError, RuntimeError):
            return False
        return any(p != root and p.is_relative_to(root) for p in candidates)

    def managed_entries(self, target_dir: Path) -> dict[str, Path]:
        """Managed links in target_dir by name. Empty when the directory is missing."""
        if not target_dir.is_dir():
            return {}
        return {
            entry.name: entry
            for entry in sorted(target_dir.iterdir())
            if self.is_managed(entry)
        }

    @staticmethod
    def desired(target: Target, skills: Iterable[Skill]) -> dict[str, Skill]:
        return {
            s.folder_name: s
            for s in skills
            if s.enabled and target.is_skill_enabled(s.folder_name)
        }

    def sync(self, target: Target, skills: Iterable[Skill], dry_run: bool = False) -> SyncResult:
        """Reconcile one target. Filesystem failures are reported, never raised."""
        result = SyncResult(target_id=target.id, dry_run=dry_run)
        if not target.enabled:
            return result
        with self._lock_for(target.id):
            try:
                self._reconcile(target, self.desired(target, skills), result)
            except OSError as e:
                logger.warning("Sync of %s failed: %s", target.id, e)
                result.errors.append(SyncError(message=f"Failed to sync {target.skills_path}: {e}"))
        logger.info(
            "Synced %s: %d created, %d removed, %d unchanged, %d errors%s",
            target.id,
            len(result.created),
            len(result.removed),
            len(result.unchanged),
            len(result.errors),
            " (dry run)" if dry_run else "",
        )
        return result

    def sync_all(
        self, targets: Iterable[Target], skills: Iterable[Skill], dry_run: bool = False
    ) -> list[SyncResult]:
        skills = list(skills)
        return [self.sync(t, skills, dry_run=dry_run) for t in targets]

    def _reconcile(self, target: Target, desired: dict[str, Skill], result: SyncResult) -> None:
        target_dir = Path(target.skills_path)
        if not result.dry_run:
            try:
                target_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                result.errors.append(
                    SyncError(message=f"Failed to create target directory {target_dir}: {e}")
                )
                return

        managed = self.managed_entries(target_dir)

        for name, skill in sorted(desired.items()):
            link = target_dir / name
            source = self.source_for(skill)
            if name in managed:
                if _points_to(link, source):
                    result.unchanged.append(name)
                    continue
                # Managed but dangling or aimed at the wrong entry: relink
                logger.debug("Replacing stale link %s", link)
                if not self._remove(link, name, result):
                    continue
            elif link.exists() or link.is_symlink():
                logger.warning("Not linking %s: %s exists and is not managed", name, link)
                continue
            self._create(link, source, name, result)

        for name, link in managed.items():
            if name not in desired:
                if self._remove(link, name, result):
                    result.removed.append(name)

    def _create(self, link: Path, source: Path, name: str, result: SyncResult) -> None:
        if not result.dry_run:
            try:
                os.symlink(source, link, target_is_directory=True)
            except OSError as e:
                logger.warning("Failed to link %s: %s", link, e)
                result.errors.append(SyncError(skill=name, message=f"Failed to create link: {e}"))
                return
        logger.debug("Linked %s -> %s", link, source)
        result.created.append(name)

    def _remove(self, link: Path, name: str, result: SyncResult) -> bool:
        if result.dry_run:
            return True
        try:
            link.unlink()
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.warning("Failed to remove %s: %s", link, e)
            result.errors.append(SyncError(skill=name, message=f"Failed to remove link: {e}"))
            return False
        logger.debug("Removed %s", link)
        return True

    def verify(self, target: Target) -> list[str]:
        """Names of managed links whose destination no longer exists. Read-only."""
        return [
            name
            for name, link in self.managed_entries(Path(target.skills_path)).items()
            if not link.exists()
        ]

    def status(self, target: Target, skills: Iterable[Skill]) -> SyncStatus:
        """Compare a target against the desired state without changing anything."""
        target_dir = Path(target.skills_path)
        desired = self.desired(target, skills) if target.enabled else {}
        managed = self.managed_entries(target_dir)
        broken = [name for name, link in managed.items() if not link.exists()]

        missing: list[str] = []
        blocked: list[str] = []
        for name, skill in sorted(desired.items()):
            link = target_dir / name
            if name in managed:
                if not _points_to(link, self.source_for(skill)):
                    missing.append(name)
            elif link.exists() or link.is_symlink():
                blocked.append(name)
            else:
                missing.append(name)
        stale = [name for name in managed if name not in desired]

        return SyncStatus(
            target_id=target.id,
            is_synced=not (missing or stale or broken),
            missing=missing,
            stale=stale,
            broken=broken,
            blocked=blocked,
        )

    def unlink(self, target: Target, folder_name: str) -> bool:
        """Remove the managed link for one skill, if present. Raises OSError on failure."""
        link = Path(target.skills_path) / folder_name
        with self._lock_for(target.id):
            if not self.is_managed(link):
                return False
            link.unlink()
        logger.debug("Removed %s", link)
        return True

    def unlink_all(self, target: Target) -> SyncResult:
        """Remove every managed link from a target; other entries stay."""
        result = SyncResult(target_id=target.id)
        with self._lock_for(target.id):
            for name, link in self.managed_entries(Path(target.skills_path)).items():
                if self._remove(link, name, result):
                    result.removed.append(name)
        return result


def _link_destination(link: Path) -> Path:
    """Where a symlink points, with its parent resolved and its last component kept."""
    raw = Path(os.readlink(link))
    if not raw.is_absolute():
        raw = link.parent / raw
    dest = Path(os.path.normpath(raw))
    return dest.parent.resolve() / dest.name


def _points_to(link: Path, source: Path) -> bool:
    try:
        return link.exists() and _link_destination(link) == source
    except (OSError, RuntimeError):
        return False
