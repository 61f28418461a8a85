"""Shared fixtures for skillsync tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from skillsync.config import EngineConfig
from skillsync.skills.models import Skill
from skillsync.skills.parser import parse_skill
from skillsync.targets.models import Target

VALID_DESCRIPTION = "Runs the project test suite and reports failures"

WriteSkill = Callable[..., Path]


def _write_skill(
    skills_dir: Path,
    slug: str,
    frontmatter: dict[str, str] | None = None,
    body: str = "Do the thing.",
) -> Path:
    """Create skills_dir/<slug>/SKILL.md and return the skill directory."""
    if frontmatter is None:
        frontmatter = {"name": slug, "description": VALID_DESCRIPTION, "license": "MIT"}
    skill_dir = skills_dir / slug
    skill_dir.mkdir(parents=True, exist_ok=True)
    lines = ["---"]
    for k, v in frontmatter.items():
        lines.append(f"{k}: {v}")
    lines.append("---")
    lines.append("")
    lines.append(body)
    (skill_dir / "SKILL.md").write_text("\n".join(lines) + "\n")
    return skill_dir


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in (
        "SKILLSYNC_HOME",
        "SKILLSYNC_SKILLS_DIR",
        "SKILLSYNC_STRICT",
        "SKILLSYNC_VALIDATE_ON_SYNC",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def write_skill() -> WriteSkill:
    return _write_skill


@pytest.fixture
def home(tmp_path: Path) -> Path:
    home_dir = tmp_path / "home"
    home_dir.mkdir()
    return home_dir


@pytest.fixture
def config(home: Path) -> EngineConfig:
    return EngineConfig.for_home(home)


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    repo_dir = tmp_path / "repo"
    repo_dir.mkdir()
    return repo_dir


@pytest.fixture
def make_skill(repo: Path) -> Callable[..., Skill]:
    def make(slug: str, frontmatter: dict[str, str] | None = None) -> Skill:
        return parse_skill(_write_skill(repo, slug, frontmatter))

    return make


@pytest.fixture
def target(tmp_path: Path) -> Target:
    return Target(id="tool", name="Tool", skills_path=str(tmp_path / "tool" / "skills"))
