"""Pydantic models for sync reports."""

from __future__ import annotations

from pydantic import BaseModel, Field


class SyncError(BaseModel):
    skill: str | None = None
    message: str


class SyncResult(BaseModel):
    target_id: str
    created: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    unchanged: list[str] = Field(default_factory=list)
    errors: list[SyncError] = Field(default_factory=list)
    dry_run: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.created or self.removed)

    @property
    def ok(self) -> bool:
        return not self.errors


class SyncStatus(BaseModel):
    target_id: str
    is_synced: bool
    # Desired but not linked
    missing: list[str] = Field(default_factory=list)
    # Linked but no longer desired
    stale: list[str] = Field(default_factory=list)
    # Managed links whose destination is gone
    broken: list[str] = Field(default_factory=list)
    # Desired names occupied by entries we do not own
    blocked: list[str] = Field(default_factory=list)
