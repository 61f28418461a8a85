"""Engine configuration: paths derived from a home directory, JSON persistence, env overrides."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from skillsync.errors import ConfigError

logger = logging.getLogger(__name__)

APP_DIR_NAME = ".skillsync"
CONFIG_FILE_NAME = "config.json"
REPOSITORY_PARENT = ".agents"
SKILLS_DIR_NAME = "skills"

_TRUTHY = ("true", "1", "yes")


@dataclass
class TargetConfig:
    enabled: bool = True
    skills_path: str | None = None
    name: str | None = None
    skill_overrides: dict[str, bool] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"enabled": self.enabled}
        if self.skills_path is not None:
            data["skills_path"] = self.skills_path
        if self.name is not None:
            data["name"] = self.name
        if self.skill_overrides:
            data["skill_overrides"] = dict(self.skill_overrides)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> TargetConfig:
        config = cls()
        if isinstance(data.get("enabled"), bool):
            config.enabled = data["enabled"]  # type: ignore[assignment]
        if isinstance(data.get("skills_path"), str):
            config.skills_path = data["skills_path"]  # type: ignore[assignment]
        if isinstance(data.get("name"), str):
            config.name = data["name"]  # type: ignore[assignment]
        overrides = data.get("skill_overrides")
        if isinstance(overrides, dict):
            config.skill_overrides = {
                str(k): v for k, v in overrides.items() if isinstance(v, bool)
            }
        return config


@dataclass
class EngineConfig:
    """Process-wide settings. Build one at startup and hand it to SkillManager."""

    home: Path
    skills_dir: Path
    config_path: Path
    legacy_skills_dir: Path
    strict: bool = False
    validate_on_sync: bool = True
    disabled_skills: list[str] = field(default_factory=list)
    targets: dict[str, TargetConfig] = field(default_factory=dict)

    @classmethod
    def for_home(cls, home: Path) -> EngineConfig:
        app_dir = home / APP_DIR_NAME
        return cls(
            home=home,
            skills_dir=home / REPOSITORY_PARENT / SKILLS_DIR_NAME,
            config_path=app_dir / CONFIG_FILE_NAME,
            legacy_skills_dir=app_dir / SKILLS_DIR_NAME,
        )

    def target(self, target_id: str) -> TargetConfig:
        """Return the stored settings for target_id, creating defaults if absent."""
        return self.targets.setdefault(target_id, TargetConfig())

    def is_skill_enabled(self, folder_name: str) -> bool:
        return folder_name not in self.disabled_skills

    def set_skill_enabled(self, folder_name: str, enabled: bool) -> None:
        if enabled:
            self.disabled_skills = [n for n in self.disabled_skills if n != folder_name]
        elif folder_name not in self.disabled_skills:
            self.disabled_skills.append(folder_name)

    def to_dict(self) -> dict[str, object]:
        return {
            "skills_dir": str(self.skills_dir),
            "strict": self.strict,
            "validate_on_sync": self.validate_on_sync,
            "disabled_skills": list(self.disabled_skills),
            "targets": {tid: cfg.to_dict() for tid, cfg in self.targets.items()},
        }

    def save(self) -> Path:
        """Write the config file atomically. Raises ConfigError on failure."""
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            _atomic_write(self.config_path, json.dumps(self.to_dict(), indent=2))
        except OSError as e:
            raise ConfigError(f"Failed to save config to {self.config_path}: {e}") from e
        return self.config_path


def _atomic_write(path: Path, content: str) -> None:
    """Write content to path atomically using tempfile + os.replace."""
    fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp, path)
    except Exception:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


def load_config(home: Path, path: Path | None = None) -> EngineConfig:
    """Load config from JSON file with env var overrides."""
    config = EngineConfig.for_home(home)
    if path is not None:
        config.config_path = path

    if config.config_path.exists():
        try:
            data = json.loads(config.config_path.read_text())
            if isinstance(data, dict):
                _apply(config, data)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Failed to load config from %s: %s", config.config_path, e)

    if env_dir := os.environ.get("SKILLSYNC_SKILLS_DIR"):
        config.skills_dir = Path(env_dir).expanduser()
    if env_strict := os.environ.get("SKILLSYNC_STRICT"):
        config.strict = env_strict.lower() in _TRUTHY
    if env_vos := os.environ.get("SKILLSYNC_VALIDATE_ON_SYNC"):
        config.validate_on_sync = env_vos.lower() in _TRUTHY
    return config


def _apply(config: EngineConfig, data: dict[str, object]) -> None:
    if isinstance(data.get("skills_dir"), str):
        config.skills_dir = Path(data["skills_dir"]).expanduser()  # type: ignore[arg-type]
    if isinstance(data.get("strict"), bool):
        config.strict = data["strict"]  # type: ignore[assignment]
    if isinstance(data.get("validate_on_sync"), bool):
        config.validate_on_sync = data["validate_on_sync"]  # type: ignore[assignment]
    disabled = data.get("disabled_skills")
    if isinstance(disabled, list):
        config.disabled_skills = [str(n) for n in disabled]
    targets = data.get("targets")
    if isinstance(targets, dict):
        config.targets = {
            str(tid): TargetConfig.from_dict(cfg)
            for tid, cfg in targets.items()
            if isinstance(cfg, dict)
        }
