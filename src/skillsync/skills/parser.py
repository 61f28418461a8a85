"""SKILL.md parsing, header normalization, templating, and repository discovery.

A skill is a directory holding a SKILL.md whose first line is ``---``,
followed by a YAML header, a closing ``---`` line, and a markdown body::

    ---
    name: my-skill
    description: What this skill does
    metadata:
      tags: python, testing
    ---

    # my-skill
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from pathlib import Path

import yaml

from skillsync.errors import (
    HeaderDecodeError,
    MissingDocumentError,
    SkillExistsError,
    SkillParseError,
    UnclosedHeaderError,
)
from skillsync.skills.models import Skill

logger = logging.getLogger(__name__)

SKILL_FILE_NAME = "SKILL.md"
HEADER_MARKER = "---"
RESOURCE_DIRS = ("scripts", "references", "assets")
DEFAULT_DESCRIPTION = "No description provided"

_KNOWN_KEYS = {"name", "description", "license", "compatibility", "allowed-tools", "metadata", "tags"}
_KEBAB_RE = re.compile(r"[a-z](?:[a-z0-9]|-(?=[a-z0-9]))*")


@dataclass
class NormalizeResult:
    yaml: str
    fixes: list[str] = field(default_factory=list)

    @property
    def was_modified(self) -> bool:
        return bool(self.fixes)


@dataclass
class LoadFailure:
    folder_name: str
    message: str


def is_valid_skill_name(name: str) -> bool:
    """Kebab-case: lowercase start, [a-z0-9-], no trailing or doubled hyphens."""
    return bool(_KEBAB_RE.fullmatch(name))


def to_kebab_case(value: str) -> str:
    """Convert any string to a valid skill name.

    "Test Skill" -> "test-skill", "myCoolSkill" -> "my-cool-skill",
    "123 go" -> "skill-123-go", "" -> "unnamed-skill".
    """
    out: list[str] = []
    prev = ""
    for ch in value:
        if ch.isascii() and ch.isalnum():
            # camelCase boundary
            if ch.isupper() and prev and (prev.islower() or prev.isdigit()):
                out.append("-")
            out.append(ch.lower())
        elif out and out[-1] != "-":
            out.append("-")
        prev = ch
    result = "".join(out).rstrip("-")
    if result and result[0].isdigit():
        result = f"skill-{result}"
    return result or "unnamed-skill"


def split_header(text: str, path: Path) -> tuple[str, str]:
    """Split a document into (header yaml, body). Raises on missing or unclosed header."""
    lines = text.lstrip().splitlines()
    if not lines or lines[0].strip() != HEADER_MARKER:
        raise HeaderDecodeError(path, "Document must start with a header block (---)")
    for i, line in enumerate(lines[1:], start=1):
        if line.strip() == HEADER_MARKER:
            return "\n".join(lines[1:i]), "\n".join(lines[i + 1 :]).strip()
    raise UnclosedHeaderError(path)


def _loose_split(text: str) -> tuple[str | None, str]:
    """Like split_header but never raises: an unclosed header runs to end of file."""
    lines = text.lstrip().splitlines()
    if not lines or lines[0].strip() != HEADER_MARKER:
        return None, text
    for i, line in enumerate(lines[1:], start=1):
        if line.strip() == HEADER_MARKER:
            return "\n".join(lines[1:i]), "\n".join(lines[i + 1 :]).strip()
    return "\n".join(lines[1:]), ""


def _decode(yaml_text: str, path: Path) -> dict[str, object]:
    try:
        data = yaml.safe_load(yaml_text)
    except yaml.YAMLError as e:
        raise HeaderDecodeError(path, f"Invalid YAML: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise HeaderDecodeError(path, "Header must be a mapping of keys to values")
    return {str(k): v for k, v in data.items()}


def _scalar(value: object) -> str | None:
    """Stringify a YAML scalar; None for sequences and mappings."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, str | int | float):
        return str(value)
    return None


def _flatten(value: object) -> str:
    """Render any YAML value as a string: lists comma-joined, mappings as k=v pairs."""
    if isinstance(value, list):
        return ", ".join(_flatten(v) for v in value)
    if isinstance(value, dict):
        return "; ".join(f"{k}={_flatten(v)}" for k, v in value.items())
    return _scalar(value) or ""


def _split_tags(value: str) -> list[str]:
    return [t.strip() for t in value.split(",") if t.strip()]


def _fields(data: dict[str, object], path: Path) -> dict[str, object]:
    """Map a decoded header onto Skill fields. Raises HeaderDecodeError on non-scalar values."""

    def text(key: str) -> str | None:
        if key not in data:
            return None
        value = _scalar(data[key])
        if value is None:
            raise HeaderDecodeError(path, f"Invalid YAML: '{key}' must be a string")
        return value

    metadata: dict[str, str] = {}
    raw_meta = data.get("metadata")
    if raw_meta is not None:
        if not isinstance(raw_meta, dict):
            raise HeaderDecodeError(path, "Invalid YAML: 'metadata' must be a mapping")
        for key, value in raw_meta.items():
            as_text = _scalar(value)
            if as_text is None:
                raise HeaderDecodeError(
                    path, f"Invalid YAML: metadata.{key} must be a string, not a {type(value).__name__}"
                )
            metadata[str(key)] = as_text

    # Unrecognized top-level keys pass through, nested metadata wins on collision
    for key, value in data.items():
        if key in _KNOWN_KEYS or key in metadata:
            continue
        as_text = _scalar(value)
        if as_text is None:
            raise HeaderDecodeError(path, f"Invalid YAML: '{key}' must be a string")
        metadata[key] = as_text

    tags = _split_tags(metadata.get("tags", ""))
    legacy_tags = data.get("tags")
    if isinstance(legacy_tags, list):
        extra = [str(t).strip() for t in legacy_tags if str(t).strip()]
    elif legacy_tags is not None:
        extra = _split_tags(_scalar(legacy_tags) or "")
    else:
        extra = []
    for tag in extra:
        if tag not in tags:
            tags.append(tag)

    return {
        "name": text("name") or "",
        "description": text("description") or "",
        "license": text("license") or None,
        "compatibility": text("compatibility") or None,
        "allowed_tools": text("allowed-tools") or None,
        "metadata": metadata,
        "tags": tags,
    }


def _fs_stats(directory: Path) -> tuple[datetime | None, int]:
    """Newest mtime and total file size under directory."""
    newest = 0.0
    total = 0
    for root, _dirs, files in os.walk(directory):
        try:
            newest = max(newest, os.stat(root).st_mtime)
        except OSError:
            continue
        for name in files:
            try:
                st = os.stat(os.path.join(root, name))
            except OSError:
                continue
            total += st.st_size
            newest = max(newest, st.st_mtime)
    modified = datetime.fromtimestamp(newest, UTC) if newest else None
    return modified, total


def _build(directory: Path, text: str, fields: dict[str, object], body: str) -> Skill:
    modified, size = _fs_stats(directory)
    return Skill(
        folder_name=directory.name,
        path=str(directory),
        body=body,
        line_count=len(text.splitlines()),
        has_scripts=(directory / "scripts").is_dir(),
        has_references=(directory / "references").is_dir(),
        has_assets=(directory / "assets").is_dir(),
        last_modified=modified,
        size_bytes=size,
        **fields,  # type: ignore[arg-type]
    )


def read_document(directory: Path) -> str:
    skill_file = directory / SKILL_FILE_NAME
    if not skill_file.is_file():
        raise MissingDocumentError(directory)
    return skill_file.read_text(encoding="utf-8")


def parse_skill(directory: Path) -> Skill:
    """Parse a skill directory. Raises SkillParseError subclasses on failure."""
    text = read_document(directory)
    header, body = split_header(text, directory / SKILL_FILE_NAME)
    data = _decode(header, directory / SKILL_FILE_NAME)
    return _build(directory, text, _fields(data, directory / SKILL_FILE_NAME), body)


def parse_skill_lenient(directory: Path) -> Skill:
    """Parse a skill, recovering from header problems instead of failing.

    Used for external content only. A broken header yields a Skill with
    empty metadata, best-effort name/description, parse_errors filled in and
    validation reports HEADER_INVALID. Still raises MissingDocumentError.
    """
    text = read_document(directory)
    try:
        header, body = split_header(text, directory / SKILL_FILE_NAME)
        data = _decode(header, directory / SKILL_FILE_NAME)
        return _build(directory, text, _fields(data, directory / SKILL_FILE_NAME), body)
    except SkillParseError as e:
        errors = [str(e)]
        error = e

    raw_header, body = _loose_split(text)
    fields: dict[str, object] = {"name": directory.name, "description": "", "metadata": {}}
    if raw_header is not None:
        try:
            loaded = yaml.safe_load(raw_header)
        except yaml.YAMLError:
            loaded = None
        if isinstance(loaded, dict):
            if isinstance(loaded.get("name"), str) and loaded["name"]:
                fields["name"] = loaded["name"]
            if isinstance(loaded.get("description"), str):
                fields["description"] = loaded["description"]

    preview = normalize_header(raw_header or "", directory.name)
    if preview.was_modified:
        errors.append(f"Header can be auto-fixed: {', '.join(preview.fixes)}")
    logger.debug("Lenient parse of %s recovered from: %s", directory, error)

    skill = _build(directory, text, fields, body)
    skill.parse_errors = errors
    return skill


def normalize_header(yaml_text: str, folder_name: str) -> NormalizeResult:
    """Rewrite a header so that it parses and carries the required fields.

    Does not touch the filesystem. Returns the new YAML and the list of fixes;
    an empty list means the header was already fine.
    """
    minimal = f"name: {folder_name}\ndescription: Skill imported with invalid header"
    try:
        data = yaml.safe_load(yaml_text) if yaml_text.strip() else {}
    except yaml.YAMLError:
        return NormalizeResult(minimal, ["Replaced unparseable YAML with a minimal header"])
    if data is None:
        data = {}
    if not isinstance(data, dict):
        return NormalizeResult(minimal, ["Header root was not a mapping, replaced with a minimal header"])

    fixes: list[str] = []
    name = data.get("name")
    if name is None or name == "":
        fixes.append(f"Added missing name field: '{folder_name}'")
        data["name"] = folder_name
    else:
        as_text = _flatten(name)
        if not is_valid_skill_name(as_text):
            fixed = to_kebab_case(as_text)
            fixes.append(f"Converted name '{as_text}' to kebab-case '{fixed}'")
            data["name"] = fixed
        elif not isinstance(name, str):
            data["name"] = as_text

    description = data.get("description")
    if description is None or description == "":
        fixes.append("Added missing description field")
        data["description"] = DEFAULT_DESCRIPTION
    elif not isinstance(description, str):
        fixes.append("Converted description to a string")
        data["description"] = _flatten(description)

    metadata = data.get("metadata")
    if metadata is not None and not isinstance(metadata, dict):
        fixes.append("Replaced non-mapping metadata with an empty mapping")
        data["metadata"] = {}
    elif isinstance(metadata, dict):
        for key, value in list(metadata.items()):
            if not isinstance(value, str):
                fixes.append(f"Converted metadata.{key} from {type(value).__name__} to string")
                metadata[key] = _flatten(value)

    for key, value in list(data.items()):
        if key in _KNOWN_KEYS or key == "tags":
            continue
        if isinstance(value, list | dict):
            fixes.append(f"Converted {key} from {type(value).__name__} to string")
            data[key] = _flatten(value)

    if not fixes:
        return NormalizeResult(yaml_text.strip())
    dumped = yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False)
    return NormalizeResult(dumped.rstrip(), fixes)


def fix_document(text: str, folder_name: str) -> tuple[str, list[str]]:
    """Rewrite a document so it parses and its header names folder_name.

    Returns (new document, fixes); the text is returned unchanged with no
    fixes when nothing applies.
    """
    raw_header, body = _loose_split(text)
    if raw_header is None:
        header = yaml.safe_dump(
            {"name": folder_name, "description": DEFAULT_DESCRIPTION},
            sort_keys=False,
            allow_unicode=True,
        ).rstrip()
        return f"---\n{header}\n---\n\n{text.lstrip()}", ["Added missing header"]
    result = normalize_header(raw_header, folder_name)
    try:
        split_header(text, Path(folder_name))
        unclosed = False
    except UnclosedHeaderError:
        unclosed = True
    except SkillParseError:
        unclosed = False
    fixes = list(result.fixes)
    if unclosed:
        fixes.append("Closed unterminated header")
    new_text = f"---\n{result.yaml}\n---\n\n{body}\n" if fixes else text

    data = yaml.safe_load(result.yaml) if result.yaml.strip() else {}
    if isinstance(data, dict) and data.get("name") != folder_name:
        new_text = replace_header_name(new_text, folder_name)
        fixes.append(f"Set name to '{folder_name}' to match its folder")
    return new_text, fixes


def render_document(
    name: str,
    description: str,
    *,
    license: str | None = None,
    compatibility: str | None = None,
    metadata: dict[str, str] | None = None,
    body: str | None = None,
) -> str:
    """Generate a SKILL.md with a header that parse_skill reads back to the same values."""
    header: dict[str, object] = {"name": name, "description": description}
    if license:
        header["license"] = license
    if compatibility:
        header["compatibility"] = compatibility
    if metadata:
        header["metadata"] = dict(metadata)
    dumped = yaml.safe_dump(header, sort_keys=False, allow_unicode=True, width=10_000).rstrip()
    if body is None:
        body = f"# {name}\n\n{description}"
    return f"---\n{dumped}\n---\n\n{body.strip()}\n"


def create_skill(skills_dir: Path, name: str, description: str) -> Skill:
    """Create skills_dir/<name>/SKILL.md from the default template and parse it."""
    skill_dir = skills_dir / name
    if skill_dir.exists() or skill_dir.is_symlink():
        raise SkillExistsError(name)
    skill_dir.mkdir(parents=True)
    (skill_dir / SKILL_FILE_NAME).write_text(render_document(name, description), encoding="utf-8")
    return parse_skill(skill_dir)


def replace_header_name(text: str, new_name: str) -> str:
    """Rewrite the top-level name: line of a header, keeping the rest verbatim."""
    lines = text.lstrip().splitlines()
    if not lines or lines[0].strip() != HEADER_MARKER:
        return text
    for i, line in enumerate(lines[1:], start=1):
        if line.strip() == HEADER_MARKER:
            lines.insert(1, f"name: {new_name}")
            break
        if line.startswith("name:"):
            lines[i] = f"name: {new_name}"
            break
    else:
        return text
    return "\n".join(lines) + "\n"


def discover_skills(skills_dir: Path) -> tuple[list[Skill], list[LoadFailure]]:
    """Parse every immediate subdirectory holding a SKILL.md.

    A directory that fails to parse is reported in the failure list and does
    not stop discovery of the others.
    """
    skills: list[Skill] = []
    failures: list[LoadFailure] = []
    if not skills_dir.is_dir():
        return skills, failures
    for entry in sorted(skills_dir.iterdir()):
        if entry.name.startswith(".") or not entry.is_dir():
            continue
        if not (entry / SKILL_FILE_NAME).is_file():
            logger.debug("Skipping %s: no %s", entry, SKILL_FILE_NAME)
            continue
        try:
            skills.append(parse_skill(entry))
        except (SkillParseError, OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to load skill %s: %s", entry.name, e)
            failures.append(LoadFailure(folder_name=entry.name, message=str(e)))
    return skills, failures
