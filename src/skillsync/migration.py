"""One-time move of skills from the legacy repository location."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from pydantic import BaseModel, Field

from skillsync.skills.parser import SKILL_FILE_NAME

logger = logging.getLogger(__name__)


class MigrationResult(BaseModel):
    migrated: bool = False
    skills_count: int = 0
    skill_names: list[str] = Field(default_factory=list)
    from_path: str
    to_path: str
    errors: list[str] = Field(default_factory=list)


def _skill_dirs(root: Path) -> list[Path]:
    if not root.is_dir():
        return []
    return [
        d
        for d in sorted(root.iterdir())
        if d.is_dir() and not d.name.startswith(".") and (d / SKILL_FILE_NAME).is_file()
    ]


def needs_migration(legacy_dir: Path, skills_dir: Path) -> bool:
    """True when the legacy location has skills and the repository has none."""
    return bool(_skill_dirs(legacy_dir)) and not _skill_dirs(skills_dir)


def migrate_legacy(legacy_dir: Path, skills_dir: Path) -> MigrationResult:
    """Copy legacy skills into the repository.

    The legacy directory is removed only when every copy succeeded.
    """
    result = MigrationResult(from_path=str(legacy_dir), to_path=str(skills_dir))
    if not needs_migration(legacy_dir, skills_dir):
        return result

    skills_dir.mkdir(parents=True, exist_ok=True)
    for source in _skill_dirs(legacy_dir):
        dest = skills_dir / source.name
        if dest.exists() or dest.is_symlink():
            result.errors.append(f"{source.name}: already exists in {skills_dir}")
            continue
        try:
            shutil.copytree(source, dest, symlinks=True)
        except (OSError, shutil.Error) as e:
            logger.warning("Failed to migrate %s: %s", source.name, e)
            result.errors.append(f"{source.name}: {e}")
            continue
        result.skill_names.append(source.name)

    result.skills_count = len(result.skill_names)
    result.migrated = result.skills_count > 0
    if not result.errors:
        shutil.rmtree(legacy_dir, ignore_errors=True)
    logger.info(
        "Migrated %d skills from %s to %s", result.skills_count, legacy_dir, skills_dir
    )
    return result
