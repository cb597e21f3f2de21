"""Compare resolved inventory projects with the tracker and plan git work."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable

from .paths import ResolvedProject
from .tracking.models import Tracker

if TYPE_CHECKING:
    from .git.executor import GitOperationExecutor
    from .git.models import RemoteCheck
    from .scheduler import OperationScheduler

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReconciliationDiff:
    """Partition of current and tracked projects into four disjoint groups."""

    new: list[ResolvedProject] = field(default_factory=list)
    removed: list[ResolvedProject] = field(default_factory=list)
    modified: list[ResolvedProject] = field(default_factory=list)
    unchanged: list[ResolvedProject] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.new or self.removed or self.modified)

    def counts(self) -> dict[str, int]:
        return {
            "new": len(self.new),
            "removed": len(self.removed),
            "modified": len(self.modified),
            "unchanged": len(self.unchanged),
        }

    def filtered(self, group: str | None) -> ReconciliationDiff:
        """Restrict ``new``, ``modified`` and ``unchanged`` to one group.

        ``removed`` is kept whole so that projects leaving the inventory are
        always dropped from the tracker.
        """

        if not group:
            return self

        def _keep(projects: Iterable[ResolvedProject]) -> list[ResolvedProject]:
            return [project for project in projects if project.group == group]

        return ReconciliationDiff(
            new=_keep(self.new),
            removed=list(self.removed),
            modified=_keep(self.modified),
            unchanged=_keep(self.unchanged),
        )


def reconcile(
    resolved: Iterable[ResolvedProject],
    tracker: Tracker,
    fingerprint: str | None = None,
) -> ReconciliationDiff:
    """Classify every project by comparing identity keys and local paths.

    The inventory fingerprint is stored on the tracker for reference only; it
    never short-circuits the comparison.
    """

    current: dict[tuple[str, str], ResolvedProject] = {}
    for project in resolved:
        current.setdefault(project.key, project)
    tracked = {entry.key: entry for entry in tracker.projects}

    diff = ReconciliationDiff()
    for key, project in current.items():
        entry = tracked.get(key)
        if entry is None:
            diff.new.append(project)
        elif entry.local_path != str(project.local_path):
            diff.modified.append(project)
        else:
            diff.unchanged.append(project)

    for key, entry in tracked.items():
        if key not in current:
            diff.removed.append(entry.to_resolved())

    if fingerprint is not None:
        tracker.inventory_hash = fingerprint

    logger.info("Reconciled inventory against tracker", extra=diff.counts())
    return diff


@dataclass(slots=True)
class SyncPlan:
    """Projects split by the git work they need."""

    to_clone: list[ResolvedProject] = field(default_factory=list)
    to_pull: list[ResolvedProject] = field(default_factory=list)
    up_to_date: list[ResolvedProject] = field(default_factory=list)
    remote_checks: list[RemoteCheck] = field(default_factory=list)

    @property
    def work_items(self) -> int:
        return len(self.to_clone) + len(self.to_pull)


async def plan_operations(
    diff: ReconciliationDiff,
    executor: GitOperationExecutor,
    scheduler: OperationScheduler,
    *,
    skip_check: bool,
) -> SyncPlan:
    """Decide which projects to clone, pull or leave alone.

    Unless ``skip_check`` is set, existing repositories are compared with
    their remote first, through the scheduler's worker pool.
    """

    plan = SyncPlan()
    to_verify: list[ResolvedProject] = []

    for project in diff.new:
        if not project.local_path.exists():
            plan.to_clone.append(project)
        elif not skip_check and executor.is_repository(project.local_path):
            to_verify.append(project)
        else:
            plan.to_pull.append(project)

    plan.to_pull.extend(diff.modified)

    for project in diff.unchanged:
        if not project.local_path.exists():
            plan.to_clone.append(project)
        elif not executor.is_repository(project.local_path):
            # sync_project reports it as not a repository
            plan.to_pull.append(project)
        elif skip_check:
            plan.up_to_date.append(project)
        else:
            to_verify.append(project)

    if to_verify:
        checks = await scheduler.map(to_verify, executor.check_remote)
        for check in checks:
            plan.remote_checks.append(check)
            if check.error is not None or check.has_changes:
                plan.to_pull.append(check.project)
            else:
                plan.up_to_date.append(check.project)

    logger.info(
        "Planned git operations",
        extra={
            "clone": len(plan.to_clone),
            "pull": len(plan.to_pull),
            "up_to_date": len(plan.up_to_date),
            "verified": len(plan.remote_checks),
        },
    )
    return plan


__all__ = ["ReconciliationDiff", "SyncPlan", "plan_operations", "reconcile"]
