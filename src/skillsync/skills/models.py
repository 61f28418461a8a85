"""Pydantic models for skills and their validation state."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, Field


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"


class ValidationIssue(BaseModel):
    code: str
    message: str
    severity: Severity
    fix_hint: str | None = None


class NotValidated(BaseModel):
    state: Literal["not_validated"] = "not_validated"


class Valid(BaseModel):
    state: Literal["valid"] = "valid"


class Warned(BaseModel):
    state: Literal["warning"] = "warning"
    issues: list[ValidationIssue]


class Invalid(BaseModel):
    state: Literal["invalid"] = "invalid"
    issues: list[ValidationIssue]


ValidationStatus = Annotated[
    NotValidated | Valid | Warned | Invalid,
    Field(discriminator="state"),
]


class Skill(BaseModel):
    # Identity on disk
    folder_name: str
    path: str
    # Header fields
    name: str = ""
    description: str = ""
    license: str | None = None
    compatibility: str | None = None
    allowed_tools: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    # Document
    body: str = ""
    line_count: int = 0
    has_scripts: bool = False
    has_references: bool = False
    has_assets: bool = False
    # Derived from the filesystem on every discovery pass
    last_modified: datetime | None = None
    size_bytes: int = 0
    # Engine state
    enabled: bool = True
    parse_errors: list[str] = Field(default_factory=list)
    validation_status: ValidationStatus = Field(default_factory=NotValidated)

    @property
    def issues(self) -> list[ValidationIssue]:
        status = self.validation_status
        if isinstance(status, Warned | Invalid):
            return list(status.issues)
        return []

    @property
    def is_syncable(self) -> bool:
        """True once validated with no blocking issues."""
        return isinstance(self.validation_status, Valid | Warned)
