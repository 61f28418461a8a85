"""Target discovery: probe known tool directories and merge user-added folders."""

from __future__ import annotations

import logging
from pathlib import Path

from skillsync.config import EngineConfig, TargetConfig
from skillsync.errors import TargetError, TargetExistsError, TargetNotFoundError
from skillsync.skills.parser import to_kebab_case
from skillsync.targets.models import KNOWN_TOOL_IDS, KNOWN_TOOLS, Target

logger = logging.getLogger(__name__)

CUSTOM_PREFIX = "folder-"


def detect_all(home: Path) -> list[Target]:
    """One Target per known tool whose config directory exists under home.

    Tools that are not installed are omitted, not reported.
    """
    found: list[Target] = []
    for tool in KNOWN_TOOLS:
        parent = home / tool.config_dir
        if not parent.is_dir():
            continue
        found.append(
            Target(
                id=tool.id,
                name=tool.name,
                skills_path=str(parent / tool.skills_subdir),
                auto_detected=True,
            )
        )
    return found


class TargetRegistry:
    """Known and custom targets, with their enabled flags and per-skill overrides.

    Settings live in EngineConfig.targets; the caller persists the config.
    """

    def __init__(self, config: EngineConfig) -> None:
        self._config = config
        self._targets: dict[str, Target] = {}

    def refresh(self) -> list[Target]:
        targets: dict[str, Target] = {}
        for target in detect_all(self._config.home):
            targets[target.id] = self._apply_settings(target)

        for target_id, settings in sorted(self._config.targets.items()):
            if target_id in targets or target_id in KNOWN_TOOL_IDS:
                continue
            if not settings.skills_path:
                continue
            target = Target(
                id=target_id,
                name=settings.name or Path(settings.skills_path).name,
                skills_path=settings.skills_path,
                auto_detected=False,
            )
            targets[target_id] = self._apply_settings(target)

        self._targets = targets
        logger.debug("Loaded %d targets", len(targets))
        return self.list()

    def _apply_settings(self, target: Target) -> Target:
        settings = self._config.targets.get(target.id)
        if settings is None:
            return target
        update: dict[str, object] = {
            "enabled": settings.enabled,
            "skill_overrides": dict(settings.skill_overrides),
        }
        if settings.skills_path and target.auto_detected:
            update["skills_path"] = settings.skills_path
        return target.model_copy(update=update)

    def list(self) -> list[Target]:
        return list(self._targets.values())

    def enabled(self) -> list[Target]:
        return [t for t in self._targets.values() if t.enabled]

    def get(self, target_id: str) -> Target:
        try:
            return self._targets[target_id]
        except KeyError:
            raise TargetNotFoundError(target_id) from None

    def set_enabled(self, target_id: str, enabled: bool) -> Target:
        target = self.get(target_id)
        self._config.target(target_id).enabled = enabled
        target.enabled = enabled
        return target

    def toggle(self, target_id: str) -> Target:
        return self.set_enabled(target_id, not self.get(target_id).enabled)

    def set_skill_override(self, target_id: str, folder_name: str, enabled: bool) -> Target:
        target = self.get(target_id)
        overrides = self._config.target(target_id).skill_overrides
        if enabled:
            # Enabled is the default, keep the map sparse
            overrides.pop(folder_name, None)
        else:
            overrides[folder_name] = False
        target.skill_overrides = dict(overrides)
        return target

    def add_custom(self, path: Path, name: str | None = None) -> Target:
        """Register a user folder as a target. The directory is created on first sync."""
        resolved = str(path.expanduser().resolve())
        for existing in self._targets.values():
            if Path(existing.skills_path).expanduser().resolve() == Path(resolved):
                raise TargetExistsError(resolved)

        display = name or Path(resolved).name or resolved
        base = f"{CUSTOM_PREFIX}{to_kebab_case(display)}"
        target_id = base
        n = 1
        while target_id in self._targets or target_id in self._config.targets:
            target_id = f"{base}-{n}"
            n += 1

        self._config.targets[target_id] = TargetConfig(
            enabled=True, skills_path=resolved, name=display
        )
        target = Target(id=target_id, name=display, skills_path=resolved)
        self._targets[target_id] = target
        logger.info("Added custom target %s -> %s", target_id, resolved)
        return target

    def remove_custom(self, target_id: str) -> Target:
        target = self.get(target_id)
        if target.auto_detected:
            raise TargetError(f"Cannot remove auto-detected target: {target_id}")
        del self._targets[target_id]
        self._config.targets.pop(target_id, None)
        logger.info("Removed custom target %s", target_id)
        return target
