"""Command handlers for the skillsync CLI."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import cast

from skillsync.config import load_config
from skillsync.importer.models import ConflictResolution, DiscoveredSkill, ImportSelection
from skillsync.manager import SkillManager
from skillsync.migration import needs_migration
from skillsync.skills.models import Skill
from skillsync.sync.models import SyncResult

_STATE_LABELS = {
    "valid": "ok",
    "warning": "warn",
    "invalid": "FAIL",
    "not_validated": "?",
}


def _home(args: argparse.Namespace) -> Path:
    from skillsync.server.app import resolve_home

    home = cast(Path | None, getattr(args, "home", None))
    return home.expanduser() if home is not None else resolve_home()


def build_manager(args: argparse.Namespace) -> SkillManager:
    config = load_config(_home(args))
    if getattr(args, "strict", False):
        config.strict = True
    manager = SkillManager(config)
    manager.refresh()
    return manager


def _print_issues(skill: Skill) -> None:
    for issue in skill.issues:
        print(f"    [{issue.severity}] {issue.code}: {issue.message}")
        if issue.fix_hint:
            print(f"      hint: {issue.fix_hint}")


def cmd_list(args: argparse.Namespace) -> None:
    manager = build_manager(args)
    skills = manager.list_skills()
    if args.valid:
        skills = [s for s in skills if s.is_syncable]
    elif args.invalid:
        skills = [s for s in skills if s.validation_status.state == "invalid"]

    if args.json:
        print(json.dumps([s.model_dump(mode="json") for s in skills], indent=2))
        return
    if not skills:
        print(f"No skills in {manager.skills_dir}")
    for skill in skills:
        label = _STATE_LABELS[skill.validation_status.state]
        flag = "" if skill.enabled else " (disabled)"
        print(f"  [{label:>4}] {skill.folder_name}{flag}: {skill.description}")
    for failure in manager.load_errors:
        print(f"  [FAIL] {failure.folder_name}: {failure.message}")


def cmd_validate(args: argparse.Namespace) -> None:
    manager = build_manager(args)
    name = cast(str | None, args.name)
    skills = [manager.validate_skill(name)] if name else manager.validate_all()
    failed = 0
    for skill in skills:
        state = skill.validation_status.state
        print(f"{skill.folder_name}: {state}")
        _print_issues(skill)
        if state == "invalid":
            failed += 1
    for failure in manager.load_errors:
        if name is None or failure.folder_name == name:
            print(f"{failure.folder_name}: unreadable\n    {failure.message}")
            failed += 1
    print(f"\n{len(skills) - failed} passed, {failed} failed")
    if failed:
        sys.exit(1)


def cmd_create(args: argparse.Namespace) -> None:
    manager = build_manager(args)
    skill = manager.create_skill(args.name, args.description or "")
    print(f"Created {skill.folder_name} at {skill.path}")


def cmd_delete(args: argparse.Namespace) -> None:
    manager = build_manager(args)
    manager.delete_skill(args.name)
    print(f"Deleted {args.name}")


def cmd_rename(args: argparse.Namespace) -> None:
    manager = build_manager(args)
    skill = manager.rename_skill(args.old_name, args.new_name)
    print(f"Renamed {args.old_name} -> {skill.folder_name}")


def cmd_fix(args: argparse.Namespace) -> None:
    manager = build_manager(args)
    fixes = manager.fix_skill(args.name)
    if not fixes:
        print(f"{args.name}: nothing to fix")
        return
    print(f"{args.name}:")
    for fix in fixes:
        print(f"  - {fix}")


def cmd_enable(args: argparse.Namespace) -> None:
    manager = build_manager(args)
    enabled = args.command == "enable"
    manager.set_skill_enabled(args.name, enabled)
    print(f"{args.name}: {'enabled' if enabled else 'disabled'}")


def _print_sync(result: SyncResult) -> None:
    prefix = "[dry run] " if result.dry_run else ""
    print(
        f"{prefix}{result.target_id}: {len(result.created)} created, "
        f"{len(result.removed)} removed, {len(result.unchanged)} unchanged"
    )
    for name in result.created:
        print(f"  + {name}")
    for name in result.removed:
        print(f"  - {name}")
    for error in result.errors:
        print(f"  ! {error.skill or result.target_id}: {error.message}")


def cmd_sync(args: argparse.Namespace) -> None:
    manager = build_manager(args)
    if args.target:
        results = [manager.sync_target(args.target, dry_run=args.dry_run)]
    else:
        results = manager.sync_all(dry_run=args.dry_run)
    if not results:
        print("No enabled targets")
    for result in results:
        _print_sync(result)
    if any(r.errors for r in results):
        sys.exit(1)


def cmd_status(args: argparse.Namespace) -> None:
    manager = build_manager(args)
    target_ids = [args.target] if args.target else [t.id for t in manager.list_targets()]
    for target_id in target_ids:
        status = manager.target_status(target_id)
        print(f"{target_id}: {'in sync' if status.is_synced else 'out of sync'}")
        for label, names in (
            ("missing", status.missing),
            ("stale", status.stale),
            ("broken", status.broken),
            ("blocked", status.blocked),
        ):
            if names:
                print(f"  {label}: {', '.join(names)}")


def cmd_targets(args: argparse.Namespace) -> None:
    manager = build_manager(args)
    action = cast(str | None, args.targets_action)
    if action in (None, "list"):
        for target in manager.list_targets():
            kind = "auto" if target.auto_detected else "custom"
            state = "on" if target.enabled else "off"
            print(f"  {target.id:<20} [{state:>3}] {kind:<6} {target.skills_path}")
            for skill_name, enabled in sorted(target.skill_overrides.items()):
                print(f"      {skill_name}: {'enabled' if enabled else 'disabled'}")
    elif action in ("enable", "disable"):
        target = manager.set_target_enabled(args.target_id, action == "enable")
        print(f"{target.id}: {'enabled' if target.enabled else 'disabled'}")
    elif action == "add":
        target = manager.add_custom_target(args.path, args.name)
        print(f"Added {target.id} -> {target.skills_path}")
    elif action == "remove":
        target = manager.remove_custom_target(args.target_id)
        print(f"Removed {target.id}")
    elif action == "override":
        enabled = args.state == "on"
        manager.set_skill_override(args.target_id, args.skill, enabled)
        print(f"{args.target_id}/{args.skill}: {'enabled' if enabled else 'disabled'}")


def _scan(manager: SkillManager, args: argparse.Namespace) -> list[DiscoveredSkill]:
    folder = cast(Path | None, args.folder)
    if folder is not None:
        return manager.scan_folder(folder, max_depth=args.depth)
    return manager.scan_importable()


def _print_candidate(candidate: DiscoveredSkill) -> None:
    marker = "!" if candidate.has_conflict else "+"
    print(f"  {marker} {candidate.name} ({candidate.source}) {candidate.source_path}")
    if candidate.conflict is not None:
        print(f"      exists: {candidate.conflict.existing_description}")
        print(f"      import: {candidate.description}")
    for fix in candidate.fixes_preview:
        print(f"      fix: {fix}")


def cmd_import(args: argparse.Namespace) -> None:
    manager = build_manager(args)
    candidates = _scan(manager, args)
    if args.import_action in (None, "scan"):
        if getattr(args, "json", False):
            print(json.dumps([c.model_dump() for c in candidates], indent=2))
            return
        if not candidates:
            print("No importable skills found")
        for candidate in candidates:
            _print_candidate(candidate)
        return

    names = set(args.names)
    if not names and not args.all:
        print("Error: name skills to import or pass --all", file=sys.stderr)
        sys.exit(1)
    chosen = [c for c in candidates if args.all or c.name in names]
    selections: list[ImportSelection] = []
    for candidate in chosen:
        resolution = ConflictResolution.IMPORT
        if candidate.has_conflict:
            resolution = ConflictResolution.OVERWRITE if args.overwrite else ConflictResolution.SKIP
        selections.append(
            ImportSelection(
                source_path=candidate.source_path,
                resolution=resolution,
                apply_fixes=args.fix,
            )
        )
        if args.dry_run:
            print(f"  {resolution}: {candidate.name} from {candidate.source_path}")
    if args.dry_run:
        return

    result = manager.import_selections(selections)
    for imported in result.imported:
        note = " (overwritten)" if imported.overwritten else ""
        print(f"  + {imported.name}{note}")
        for fix in imported.fixes_applied:
            print(f"      fix: {fix}")
    for name in result.skipped:
        print(f"  = {name} (skipped)")
    for failure in result.errors:
        print(f"  ! {failure.name}: {failure.message}")
    print(
        f"{result.imported_count} imported, {result.skipped_count} skipped, "
        f"{result.error_count} errors"
    )
    if result.synced_to:
        print(f"Synced to: {', '.join(result.synced_to)}")
    if result.errors:
        sys.exit(1)


def cmd_migrate(args: argparse.Namespace) -> None:
    manager = build_manager(args)
    result = manager.migrate_legacy()
    if not result.migrated and not result.errors:
        print(f"Nothing to migrate from {result.from_path}")
        return
    print(f"Migrated {result.skills_count} skills from {result.from_path} to {result.to_path}")
    for error in result.errors:
        print(f"  ! {error}")
    if result.errors:
        sys.exit(1)


def cmd_doctor(args: argparse.Namespace) -> None:
    manager = build_manager(args)
    config = manager.config
    problems = 0

    print(f"Repository: {config.skills_dir}")
    stats = manager.stats()
    print(
        f"  {stats['total']} skills: {stats['valid']} valid, {stats['warning']} warnings, "
        f"{stats['invalid']} invalid"
    )
    for failure in manager.load_errors:
        print(f"  ! {failure.folder_name}: {failure.message}")
        problems += 1
    if needs_migration(config.legacy_skills_dir, config.skills_dir):
        print(f"  ! legacy skills found in {config.legacy_skills_dir}; run 'skillsync migrate'")
        problems += 1

    print(f"Config: {config.config_path} ({'present' if config.config_path.exists() else 'defaults'})")
    print(f"Targets: {stats['enabled_targets']} of {stats['targets']} enabled")
    for target in manager.list_targets():
        broken = manager.syncer.verify(target)
        if broken:
            print(f"  ! {target.id}: broken links: {', '.join(broken)}")
            problems += 1

    if problems:
        print(f"\n{problems} problem(s) found")
        sys.exit(1)
    print("\nAll checks passed")


def cmd_serve(args: argparse.Namespace) -> None:
    from skillsync.server.runner import run_server

    run_server(load_config(_home(args)), host=args.host, port=args.port)
