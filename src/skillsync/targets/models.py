"""Pydantic models for sync targets and the table of known tools."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, Field


class Target(BaseModel):
    id: str
    name: str
    skills_path: str
    auto_detected: bool = False
    enabled: bool = True
    # folder_name -> enabled for this target; absent means enabled
    skill_overrides: dict[str, bool] = Field(default_factory=dict)

    def is_skill_enabled(self, folder_name: str) -> bool:
        return self.skill_overrides.get(folder_name, True)


@dataclass(frozen=True)
class ToolSpec:
    """A tool whose presence is detected by its config directory under home."""

    id: str
    name: str
    config_dir: str
    skills_subdir: str = "skills"


KNOWN_TOOLS: tuple[ToolSpec, ...] = (
    ToolSpec("claude-code", "Claude Code", ".claude"),
    ToolSpec("codex", "Codex", ".codex"),
    ToolSpec("gemini", "Gemini CLI", ".gemini"),
    ToolSpec("cursor", "Cursor", ".cursor"),
    ToolSpec("amp", "Amp", ".amp"),
    ToolSpec("goose", "Goose", ".goose"),
    ToolSpec("roo-code", "Roo Code", ".roo-code"),
    ToolSpec("opencode", "OpenCode", ".opencode"),
    ToolSpec("vibe", "Vibe", ".vibe"),
    ToolSpec("firebender", "Firebender", ".firebender"),
    ToolSpec("mux", "Mux", ".mux"),
    ToolSpec("autohand", "Autohand", ".autohand"),
)

KNOWN_TOOL_IDS = frozenset(t.id for t in KNOWN_TOOLS)
