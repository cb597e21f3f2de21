"""SyncX command line interface."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from . import __version__
from .config import ConfigurationError, SyncSettings, build_settings
from .git.executor import GitOperationExecutor
from .git.runner import GitNotFoundError
from .inspection import discover_repositories, inspect_paths, inspect_projects
from .inventory import collect_projects, filter_by_group, load_inventory, unique_groups
from .paths import resolve_projects
from .scheduler import LoggingProgress, OperationScheduler
from .sync import DEFAULT_OUTPUT_DIR, SyncReport, resolve_output_dir, run_sync

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_CONFIG = 2


def configure_logging(level: str) -> None:
    """Configure root logging for the SyncX CLI."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def settings_from_args(args: argparse.Namespace) -> SyncSettings:
    overrides: dict[str, Any] = {
        "inventory_file": getattr(args, "file", None),
        "output_dir": getattr(args, "dir", None),
        "protocol": getattr(args, "protocol", None),
        "parallel": getattr(args, "parallel", None),
        "group": getattr(args, "group", None),
        "git_path": getattr(args, "git_path", None),
        "strip_prefixes": getattr(args, "strip_prefixes", None),
    }
    if getattr(args, "dry_run", False):
        overrides["dry_run"] = True
    if getattr(args, "skip_check", False):
        overrides["skip_check"] = True
    if getattr(args, "verbose", False):
        overrides["log_level"] = "DEBUG"
    return build_settings(**overrides)


def _executor(settings: SyncSettings) -> GitOperationExecutor:
    try:
        return GitOperationExecutor.from_settings(settings)
    except GitNotFoundError as exc:
        raise ConfigurationError(str(exc)) from exc


def _print_report(report: SyncReport) -> None:
    summary = report.summary
    print(f"Output directory: {report.output_dir}")
    print(
        "Projects: "
        f"{len(report.diff.new)} new, {len(report.diff.modified)} moved, "
        f"{len(report.diff.unchanged)} unchanged, {len(report.diff.removed)} removed"
    )
    print(
        f"Total {summary.total}: {summary.cloned} cloned, {summary.updated} updated, "
        f"{summary.skipped} up to date, {summary.empty} empty, {summary.failure} failed "
        f"({summary.duration:.1f}s)"
    )
    for result in summary.empty_projects:
        print(f"  empty  {result.project.name} ({result.project.local_path})")
    for result in summary.failed_projects:
        print(f"  failed {result.project.name}: {result.message}")


def cmd_sync(args: argparse.Namespace) -> int:
    settings = settings_from_args(args)
    configure_logging(settings.log_level)
    executor = _executor(settings)
    report = run_sync(settings, executor=executor, progress=LoggingProgress())
    if args.json:
        payload = report.summary.as_dict()
        payload["output_dir"] = str(report.output_dir)
        payload["dry_run"] = settings.dry_run
        print(json.dumps(payload, indent=2))
    else:
        _print_report(report)
    return EXIT_FAILURES if report.summary.has_failures else EXIT_OK


def cmd_list(args: argparse.Namespace) -> int:
    settings = settings_from_args(args)
    loaded = load_inventory(settings.inventory_file)
    records = filter_by_group(collect_projects(loaded.inventory), settings.group)
    if args.json:
        print(
            json.dumps(
                [{"name": r.name, "url": r.source_url, "group": r.group} for r in records],
                indent=2,
            )
        )
        return EXIT_OK
    for group in unique_groups(records):
        members = [record for record in records if record.group == group]
        print(f"{group} ({len(members)})")
        for record in members:
            print(f"  {record.name}  {record.source_url}")
    print(f"{len(records)} projects")
    return EXIT_OK


def _inventory_projects(settings: SyncSettings):
    loaded = load_inventory(settings.inventory_file)
    records = filter_by_group(collect_projects(loaded.inventory), settings.group)
    output_dir = Path(resolve_output_dir(settings, loaded.inventory)).expanduser().absolute()
    return output_dir, resolve_projects(records, settings, output_dir)


def cmd_status(args: argparse.Namespace) -> int:
    settings = settings_from_args(args)
    configure_logging(settings.log_level)
    executor = _executor(settings)
    output_dir, projects = _inventory_projects(settings)
    scheduler = OperationScheduler(executor, settings.parallel)
    inspections = asyncio.run(inspect_projects(projects, executor, scheduler))

    if args.json:
        print(
            json.dumps(
                [
                    {
                        "name": item.name,
                        "path": str(item.path),
                        "exists": item.exists,
                        "is_repository": item.is_repository,
                        "branch": item.branch,
                        "uncommitted": item.changes.total if item.changes else 0,
                        "ahead": item.ahead,
                        "behind": item.behind,
                        "error": item.error,
                    }
                    for item in inspections
                ],
                indent=2,
            )
        )
        return EXIT_OK

    print(f"Output directory: {output_dir}")
    for item in inspections:
        if not item.exists:
            state = "missing"
        elif not item.is_repository:
            state = "not a repository"
        elif item.error:
            state = f"error: {item.error}"
        elif item.has_changes:
            state = f"{item.changes.total} uncommitted"
        else:
            state = "clean"
        branch = item.branch or "-"
        divergence = ""
        if item.ahead or item.behind:
            divergence = f" +{item.ahead or 0}/-{item.behind or 0}"
        print(f"  {item.name:<30} {branch:<20} {state}{divergence}")
    return EXIT_OK


def cmd_check(args: argparse.Namespace) -> int:
    settings = settings_from_args(args)
    configure_logging(settings.log_level)
    executor = _executor(settings)
    _, projects = _inventory_projects(settings)
    present = [project for project in projects if executor.is_repository(project.local_path)]
    scheduler = OperationScheduler(executor, settings.parallel)
    checks = asyncio.run(scheduler.map(present, executor.check_remote, label=lambda project: project.name))

    errors = [check for check in checks if check.error is not None]
    changed = [check for check in checks if check.error is None and check.has_changes]
    print(f"Checked {len(checks)} of {len(projects)} projects ({len(projects) - len(present)} not cloned)")
    for check in changed:
        print(f"  remote changes  {check.project.name}")
    for check in errors:
        print(f"  error           {check.project.name}: {check.error}")
    return EXIT_FAILURES if errors else EXIT_OK


def cmd_scan(args: argparse.Namespace) -> int:
    settings = settings_from_args(args)
    configure_logging(settings.log_level)
    executor = _executor(settings)
    root = Path(args.root or settings.output_dir or DEFAULT_OUTPUT_DIR).expanduser().absolute()
    if not root.is_dir():
        raise ConfigurationError(f"Scan root {root} is not a directory")
    paths = discover_repositories(root, max_depth=args.max_depth)
    scheduler = OperationScheduler(executor, settings.parallel)
    inspections = asyncio.run(inspect_paths(paths, executor, scheduler, root=root))

    dirty = [item for item in inspections if item.has_changes]
    print(f"Found {len(inspections)} repositories under {root}; {len(dirty)} with uncommitted changes")
    for item in dirty:
        counts = item.changes
        print(
            f"  {item.name} [{item.branch or '-'}] "
            f"{counts.modified} modified, {counts.staged} staged, {counts.untracked} untracked"
        )
    for item in inspections:
        if item.error:
            print(f"  error {item.name}: {item.error}")
    return EXIT_OK


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-f", "--file", type=Path, help="Inventory file (JSON or YAML)")
    parser.add_argument("-d", "--dir", type=Path, help="Output directory")
    parser.add_argument("--protocol", choices=("ssh", "http"), help="Clone protocol")
    parser.add_argument("-p", "--parallel", type=int, help="Concurrent git operations (1-20)")
    parser.add_argument("-g", "--group", help="Only process this group")
    parser.add_argument("--git-path", help="Path to the git executable")
    parser.add_argument(
        "--strip-prefix",
        dest="strip_prefixes",
        help='Comma-separated organisation prefixes to drop from local paths (default "org"; "" disables)',
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="syncx", description="Keep local clones in step with a repository inventory")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="cmd")

    p_sync = sub.add_parser("sync", help="Clone new projects and update existing ones")
    _add_common(p_sync)
    p_sync.add_argument("--dry-run", action="store_true", help="Report planned operations without running git")
    p_sync.add_argument("--skip-check", action="store_true", help="Trust the tracker instead of checking remotes")
    p_sync.add_argument("--json", action="store_true", help="Output JSON")
    p_sync.set_defaults(func=cmd_sync)

    p_list = sub.add_parser("list", help="List inventory projects by group")
    _add_common(p_list)
    p_list.add_argument("--json", action="store_true", help="Output JSON")
    p_list.set_defaults(func=cmd_list)

    p_status = sub.add_parser("status", help="Show local state of inventory projects")
    _add_common(p_status)
    p_status.add_argument("--json", action="store_true", help="Output JSON")
    p_status.set_defaults(func=cmd_status)

    p_check = sub.add_parser("check", help="Report projects with new remote commits")
    _add_common(p_check)
    p_check.set_defaults(func=cmd_check)

    p_scan = sub.add_parser("scan", help="Find repositories with uncommitted changes")
    _add_common(p_scan)
    p_scan.add_argument("--root", type=Path, help="Directory to scan (defaults to the output directory)")
    p_scan.add_argument("--max-depth", type=int, default=5, help="Maximum directory depth")
    p_scan.set_defaults(func=cmd_scan)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return EXIT_OK
    try:
        return args.func(args)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG


if __name__ == "__main__":
    raise SystemExit(main())
