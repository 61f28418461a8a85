"""Structural validation of parsed skills.

Every rule runs on every skill; a single pass reports every issue.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable

from skillsync.skills.models import (
    Invalid,
    Severity,
    Skill,
    Valid,
    ValidationIssue,
    ValidationStatus,
    Warned,
)

MAX_NAME_LENGTH = 64
MAX_DESCRIPTION_LENGTH = 1024
MAX_COMPATIBILITY_LENGTH = 500
MIN_DESCRIPTION_LENGTH = 20
MAX_DOCUMENT_LINES = 500

_NAME_CHARS_RE = re.compile(r"[A-Za-z0-9_-]+")

Rule = Callable[[Skill], Iterable[ValidationIssue]]


def _error(code: str, message: str, fix_hint: str | None = None) -> ValidationIssue:
    return ValidationIssue(code=code, message=message, severity=Severity.ERROR, fix_hint=fix_hint)


def _warning(code: str, message: str, fix_hint: str | None = None) -> ValidationIssue:
    return ValidationIssue(code=code, message=message, severity=Severity.WARNING, fix_hint=fix_hint)


def check_header(skill: Skill) -> Iterable[ValidationIssue]:
    for message in skill.parse_errors:
        yield _error("HEADER_INVALID", message, "Run fix to rewrite the header")


def check_required(skill: Skill) -> Iterable[ValidationIssue]:
    if not skill.name.strip():
        yield _error("MISSING_NAME", "Header has no name", f"Add 'name: {skill.folder_name}'")
    if not skill.description.strip():
        yield _error(
            "MISSING_DESCRIPTION",
            "Header has no description",
            "Add a description of what the skill does and when to use it",
        )


def check_name_matches_folder(skill: Skill) -> Iterable[ValidationIssue]:
    if skill.name and skill.name != skill.folder_name:
        yield _error(
            "NAME_MISMATCH",
            f"Name '{skill.name}' does not match folder '{skill.folder_name}'",
            f"Change name to '{skill.folder_name}'",
        )


def check_name_chars(skill: Skill) -> Iterable[ValidationIssue]:
    if skill.name and not _NAME_CHARS_RE.fullmatch(skill.name):
        yield _error(
            "INVALID_NAME_CHARS",
            f"Name '{skill.name}' may only contain letters, digits, '-' and '_'",
            "Use kebab-case, e.g. 'my-skill'",
        )


def check_lengths(skill: Skill) -> Iterable[ValidationIssue]:
    if len(skill.name) > MAX_NAME_LENGTH:
        yield _error(
            "NAME_TOO_LONG",
            f"Name is {len(skill.name)} characters (max {MAX_NAME_LENGTH})",
        )
    if len(skill.description) > MAX_DESCRIPTION_LENGTH:
        yield _error(
            "DESCRIPTION_TOO_LONG",
            f"Description is {len(skill.description)} characters (max {MAX_DESCRIPTION_LENGTH})",
        )
    if skill.compatibility and len(skill.compatibility) > MAX_COMPATIBILITY_LENGTH:
        yield _error(
            "COMPATIBILITY_TOO_LONG",
            f"Compatibility is {len(skill.compatibility)} characters (max {MAX_COMPATIBILITY_LENGTH})",
        )


def check_quality(skill: Skill) -> Iterable[ValidationIssue]:
    description = skill.description.strip()
    if description and len(description) < MIN_DESCRIPTION_LENGTH:
        yield _warning(
            "SHORT_DESCRIPTION",
            f"Description is only {len(description)} characters",
            "Describe what the skill does and when an agent should use it",
        )
    if not skill.license:
        yield _warning("MISSING_LICENSE", "No license specified", "Add e.g. 'license: MIT'")
    if skill.line_count > MAX_DOCUMENT_LINES:
        yield _warning(
            "DOCUMENT_TOO_LONG",
            f"SKILL.md has {skill.line_count} lines (recommended max {MAX_DOCUMENT_LINES})",
            "Move detail into references/",
        )


DEFAULT_RULES: tuple[Rule, ...] = (
    check_header,
    check_required,
    check_name_matches_folder,
    check_name_chars,
    check_lengths,
    check_quality,
)


class Validator:
    """Runs the rule set over skills and sets their validation_status."""

    def __init__(self, strict: bool = False, rules: tuple[Rule, ...] = DEFAULT_RULES) -> None:
        self.strict = strict
        self._rules = rules

    def issues(self, skill: Skill) -> list[ValidationIssue]:
        found: list[ValidationIssue] = []
        for rule in self._rules:
            found.extend(rule(skill))
        return found

    def status_for(self, issues: list[ValidationIssue]) -> ValidationStatus:
        """Aggregate issues. Strict mode makes warnings blocking; labels are kept."""
        warnings = [i for i in issues if i.severity == Severity.WARNING]
        blocking = any(i.severity == Severity.ERROR for i in issues)
        if self.strict and warnings:
            blocking = True
        if blocking:
            return Invalid(issues=issues)
        if warnings:
            return Warned(issues=warnings)
        return Valid()

    def validate(self, skill: Skill) -> Skill:
        skill.validation_status = self.status_for(self.issues(skill))
        return skill

    def validate_all(self, skills: Iterable[Skill]) -> list[Skill]:
        return [self.validate(s) for s in skills]


def validate(skill: Skill, strict: bool = False) -> Skill:
    return Validator(strict=strict).validate(skill)
