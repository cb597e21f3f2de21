"""End-to-end synchronisation pipeline."""

from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable

from .config import ConfigurationError, SyncSettings
from .git.executor import GitOperationExecutor
from .git.models import OperationResult
from .inventory import Inventory, collect_projects, load_inventory
from .paths import resolve_projects
from .reconcile import ReconciliationDiff, SyncPlan, plan_operations, reconcile
from .scheduler import NullProgress, OperationScheduler, ProgressSink
from .summary import Summary, summarize
from .tracking import Tracker, TrackerIOError, TrackerStore

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_DIR = Path("repositories")


@dataclass(slots=True)
class SyncReport:
    output_dir: Path
    diff: ReconciliationDiff
    plan: SyncPlan
    results: list[OperationResult]
    summary: Summary
    tracker_saved: bool = False


def ensure_output_directory(path: Path) -> Path:
    """Create ``path`` if needed and confirm it is a writable directory."""

    directory = Path(path).expanduser().absolute()
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigurationError(f"Cannot create output directory {directory}: {exc}") from exc
    if not directory.is_dir():
        raise ConfigurationError(f"Output path {directory} is not a directory")
    if not os.access(directory, os.W_OK):
        raise ConfigurationError(f"Output directory {directory} is not writable")
    return directory


def resolve_output_dir(settings: SyncSettings, inventory: Inventory) -> Path:
    if settings.output_dir is not None:
        return settings.output_dir
    if inventory.physical_location:
        return Path(inventory.physical_location)
    return DEFAULT_OUTPUT_DIR


class SyncService:
    """Reconcile the inventory with disk and run the resulting git operations."""

    def __init__(
        self,
        settings: SyncSettings,
        *,
        executor: GitOperationExecutor | None = None,
        progress: ProgressSink | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings
        self._executor = executor
        self._progress = progress or NullProgress()
        self._clock = clock

    @property
    def settings(self) -> SyncSettings:
        return self._settings

    async def run(self) -> SyncReport:
        settings = self._settings
        started = time.monotonic()

        loaded = load_inventory(settings.inventory_file)
        records = collect_projects(loaded.inventory)
        output_dir = ensure_output_directory(resolve_output_dir(settings, loaded.inventory))
        logger.info(
            "Loaded inventory",
            extra={"inventory": str(loaded.path), "projects": len(records), "output_dir": str(output_dir)},
        )

        store = TrackerStore(output_dir, clock=self._clock)
        tracker = store.load_or_create(settings.inventory_file)
        resolved = resolve_projects(records, settings, output_dir)
        diff = reconcile(resolved, tracker, loaded.fingerprint)

        for project in diff.removed:
            tracker.remove(project.key)
            logger.info(
                "Project left the inventory; local directory kept",
                extra={"project": project.name, "path": str(project.local_path)},
            )

        scoped = diff.filtered(settings.group)
        if settings.group and not (scoped.new or scoped.modified or scoped.unchanged):
            logger.warning("No projects found for group", extra={"group": settings.group})

        executor = self._executor or GitOperationExecutor.from_settings(settings)
        verifier = OperationScheduler(executor, settings.parallel)
        plan = await plan_operations(
            scoped, executor, verifier, skip_check=settings.skip_check or settings.dry_run
        )

        scheduler = OperationScheduler(executor, settings.parallel, progress=self._progress)
        results = await scheduler.run(plan.to_clone, plan.to_pull)

        if not settings.dry_run:
            self._apply_results(tracker, plan, results, store.now())

        summary = summarize(results, len(plan.up_to_date), duration=time.monotonic() - started)
        report = SyncReport(output_dir=output_dir, diff=diff, plan=plan, results=results, summary=summary)

        if settings.dry_run:
            logger.info("Dry run; tracker left unchanged", extra={"tracker": str(store.path)})
        else:
            try:
                store.save(tracker)
                report.tracker_saved = True
            except TrackerIOError as exc:
                logger.warning("Tracker was not saved", extra={"error": str(exc)})

        logger.info("Sync finished", extra=summary.as_dict())
        return report

    @staticmethod
    def _apply_results(
        tracker: Tracker, plan: SyncPlan, results: list[OperationResult], timestamp: datetime
    ) -> None:
        for check in plan.remote_checks:
            if check.error is None and not check.has_changes:
                tracker.upsert(check.project, status="up-to-date", commit_hash=check.commit_hash, timestamp=timestamp)

        for result in results:
            if result.success:
                if result.is_clone:
                    status = "cloned"
                elif result.up_to_date:
                    status = "up-to-date"
                else:
                    status = "updated"
                tracker.upsert(result.project, status=status, commit_hash=result.commit_hash, timestamp=timestamp)
            elif not result.is_empty:
                tracker.mark_error(result.project.key, timestamp)


def run_sync(
    settings: SyncSettings,
    *,
    executor: GitOperationExecutor | None = None,
    progress: ProgressSink | None = None,
) -> SyncReport:
    """Blocking wrapper around ``SyncService.run``."""

    return asyncio.run(SyncService(settings, executor=executor, progress=progress).run())


__all__ = [
    "DEFAULT_OUTPUT_DIR",
    "SyncReport",
    "SyncService",
    "ensure_output_directory",
    "resolve_output_dir",
    "run_sync",
]
