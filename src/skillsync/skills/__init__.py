"""Skill model, SKILL.md parsing and validation."""
