"""Pydantic models for the import pipeline."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field


class ConflictResolution(StrEnum):
    IMPORT = "import"
    SKIP = "skip"
    OVERWRITE = "overwrite"


class ConflictInfo(BaseModel):
    existing_folder_name: str
    existing_description: str
    existing_path: str


class DiscoveredSkill(BaseModel):
    """An external skill directory that could be copied into the repository."""

    name: str
    folder_name: str
    description: str = ""
    source_path: str
    # Target id for target scans, "folder" for folder scans
    source: str
    has_scripts: bool = False
    has_references: bool = False
    has_assets: bool = False
    parse_errors: list[str] = Field(default_factory=list)
    needs_fixes: bool = False
    fixes_preview: list[str] = Field(default_factory=list)
    conflict: ConflictInfo | None = None

    @property
    def has_conflict(self) -> bool:
        return self.conflict is not None

    @property
    def default_resolution(self) -> ConflictResolution:
        return ConflictResolution.SKIP if self.has_conflict else ConflictResolution.IMPORT


class ImportSelection(BaseModel):
    source_path: str
    resolution: ConflictResolution = ConflictResolution.IMPORT
    apply_fixes: bool = False
    # Repository folder name; defaults to the skill's own name
    name: str | None = None


class ImportedSkill(BaseModel):
    name: str
    path: str
    source_path: str
    overwritten: bool = False
    fixes_applied: list[str] = Field(default_factory=list)


class ImportFailure(BaseModel):
    name: str
    message: str


class ImportResult(BaseModel):
    imported: list[ImportedSkill] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    errors: list[ImportFailure] = Field(default_factory=list)
    synced_to: list[str] = Field(default_factory=list)

    @property
    def imported_count(self) -> int:
        return len(self.imported)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    @property
    def error_count(self) -> int:
        return len(self.errors)
