"""CLI entry point for skillsync."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import cast

from skillsync import __version__
from skillsync.errors import SkillSyncError
from skillsync.importer.importer import DEFAULT_SCAN_DEPTH
from skillsync.server.runner import DEFAULT_HOST, DEFAULT_PORT


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="skillsync",
        description="Keep one repository of agent skills linked into every tool that reads them",
    )
    _ = parser.add_argument(
        "-V", "--version", action="version", version=f"skillsync {__version__}"
    )
    _ = parser.add_argument(
        "--home", type=Path, default=None, help="Home directory (default: $SKILLSYNC_HOME or ~)"
    )
    _ = parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command")

    list_p = subparsers.add_parser("list", help="List skills in the repository")
    only = list_p.add_mutually_exclusive_group()
    _ = only.add_argument("--valid", action="store_true", help="Only skills that can be synced")
    _ = only.add_argument("--invalid", action="store_true", help="Only skills that fail validation")
    _ = list_p.add_argument("--json", action="store_true", help="Print JSON")

    validate_p = subparsers.add_parser("validate", help="Validate one or all skills")
    _ = validate_p.add_argument("name", nargs="?", default=None)
    _ = validate_p.add_argument("--strict", action="store_true", help="Treat warnings as errors")

    create_p = subparsers.add_parser("create", help="Create a skill from the template")
    _ = create_p.add_argument("name")
    _ = create_p.add_argument("-d", "--description", default="")

    delete_p = subparsers.add_parser("delete", help="Delete a skill and its links")
    _ = delete_p.add_argument("name")

    rename_p = subparsers.add_parser("rename", help="Rename a skill folder and header")
    _ = rename_p.add_argument("old_name")
    _ = rename_p.add_argument("new_name")

    fix_p = subparsers.add_parser("fix", help="Normalize a skill's header")
    _ = fix_p.add_argument("name")

    for verb in ("enable", "disable"):
        p = subparsers.add_parser(verb, help=f"{verb.capitalize()} a skill for every target")
        _ = p.add_argument("name")

    sync_p = subparsers.add_parser("sync", help="Link skills into targets")
    _ = sync_p.add_argument("--target", default=None, help="Only this target id")
    _ = sync_p.add_argument("--dry-run", action="store_true", dest="dry_run")

    status_p = subparsers.add_parser("status", help="Compare targets with the repository")
    _ = status_p.add_argument("--target", default=None, help="Only this target id")

    targets_p = subparsers.add_parser("targets", help="Manage sync targets")
    targets_sub = targets_p.add_subparsers(dest="targets_action")
    _ = targets_sub.add_parser("list", help="List targets")
    for verb in ("enable", "disable"):
        p = targets_sub.add_parser(verb, help=f"{verb.capitalize()} a target")
        _ = p.add_argument("target_id")
    add_p = targets_sub.add_parser("add", help="Add a custom folder target")
    _ = add_p.add_argument("path", type=Path)
    _ = add_p.add_argument("--name", default=None)
    remove_p = targets_sub.add_parser("remove", help="Remove a custom target and its links")
    _ = remove_p.add_argument("target_id")
    override_p = targets_sub.add_parser("override", help="Enable or disable a skill for one target")
    _ = override_p.add_argument("target_id")
    _ = override_p.add_argument("skill")
    _ = override_p.add_argument("state", choices=["on", "off"])

    import_p = subparsers.add_parser("import", help="Import skills from targets or a folder")
    import_sub = import_p.add_subparsers(dest="import_action")
    scan_p = import_sub.add_parser("scan", help="List importable skills")
    apply_p = import_sub.add_parser("apply", help="Import skills")
    for p in (scan_p, apply_p):
        _ = p.add_argument("--folder", type=Path, default=None, help="Scan this folder")
        _ = p.add_argument("--depth", type=int, default=DEFAULT_SCAN_DEPTH)
    _ = scan_p.add_argument("--json", action="store_true")
    _ = apply_p.add_argument("names", nargs="*", help="Skill names to import")
    _ = apply_p.add_argument("--all", action="store_true", help="Import every candidate")
    _ = apply_p.add_argument(
        "--overwrite", action="store_true", help="Replace conflicting repository skills"
    )
    _ = apply_p.add_argument("--fix", action="store_true", help="Normalize headers on import")
    _ = apply_p.add_argument("--dry-run", action="store_true", dest="dry_run")

    _ = subparsers.add_parser("migrate", help="Move skills from the legacy location")
    _ = subparsers.add_parser("doctor", help="Check repository, config and targets")

    serve_p = subparsers.add_parser("serve", help="Start the HTTP API server")
    _ = serve_p.add_argument("--host", default=DEFAULT_HOST)
    _ = serve_p.add_argument("--port", type=int, default=DEFAULT_PORT)
    return parser


def main() -> None:
    from skillsync import commands

    parser = _build_parser()
    args = parser.parse_args(sys.argv[1:])

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    dispatch = {
        "list": commands.cmd_list,
        "validate": commands.cmd_validate,
        "create": commands.cmd_create,
        "delete": commands.cmd_delete,
        "rename": commands.cmd_rename,
        "fix": commands.cmd_fix,
        "enable": commands.cmd_enable,
        "disable": commands.cmd_enable,
        "sync": commands.cmd_sync,
        "status": commands.cmd_status,
        "targets": commands.cmd_targets,
        "import": commands.cmd_import,
        "migrate": commands.cmd_migrate,
        "doctor": commands.cmd_doctor,
        "serve": commands.cmd_serve,
    }
    command = cast(str | None, args.command)
    handler = dispatch.get(command) if command is not None else None
    if not handler:
        parser.print_help()
        sys.exit(1)
    try:
        handler(args)
    except (SkillSyncError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
