"""Exception hierarchy for the skill repository engine."""

from __future__ import annotations

from pathlib import Path


class SkillSyncError(Exception):
    """Base class for every error raised by skillsync."""


class ConfigError(SkillSyncError):
    """Raised when the configuration file cannot be written."""


class SkillParseError(SkillSyncError):
    """Raised when a skill directory cannot be parsed into a Skill."""

    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        self.message = message
        super().__init__(f"{message}: {path}")


class MissingDocumentError(SkillParseError):
    """Raised when a skill directory has no SKILL.md."""

    def __init__(self, path: Path) -> None:
        super().__init__(path, "Missing SKILL.md")


class UnclosedHeaderError(SkillParseError):
    """Raised when the opening --- marker has no closing marker."""

    def __init__(self, path: Path) -> None:
        super().__init__(path, "Could not find closing header marker (---)")


class HeaderDecodeError(SkillParseError):
    """Raised when the header body is missing or is not valid structured data."""


class SkillNotFoundError(SkillSyncError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Skill not found: {name}")


class SkillExistsError(SkillSyncError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Skill already exists: {name}")


class InvalidSkillNameError(SkillSyncError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f"Invalid skill name '{name}': must be kebab-case (lowercase letters, digits, hyphens)"
        )


class TargetError(SkillSyncError):
    """Raised when a target operation is not allowed."""


class TargetNotFoundError(TargetError):
    def __init__(self, target_id: str) -> None:
        self.target_id = target_id
        super().__init__(f"Target not found: {target_id}")


class TargetExistsError(TargetError):
    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Target already exists: {key}")


class SkillImportError(SkillSyncError):
    """Raised when a single import selection cannot be applied."""
