"""Read-only inspection of local repositories."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from .git.executor import GitOperationExecutor
from .git.models import ChangeCounts, RepositoryStateError
from .paths import ResolvedProject
from .scheduler import OperationScheduler

logger = logging.getLogger(__name__)

SKIPPED_DIRECTORIES = frozenset(
    {
        ".git",
        "node_modules",
        "vendor",
        ".venv",
        "venv",
        "__pycache__",
        ".next",
        ".nuxt",
        "dist",
        "build",
    }
)


@dataclass(slots=True)
class RepositoryInspection:
    path: Path
    name: str
    exists: bool = False
    is_repository: bool = False
    branch: str | None = None
    changes: ChangeCounts | None = None
    ahead: int | None = None
    behind: int | None = None
    error: str | None = None

    @property
    def has_changes(self) -> bool:
        return self.changes is not None and self.changes.has_changes

    @property
    def is_clean(self) -> bool:
        return self.is_repository and self.error is None and not self.has_changes


async def inspect_repository(executor: GitOperationExecutor, path: Path, name: str) -> RepositoryInspection:
    """Collect branch, uncommitted changes and upstream divergence for ``path``."""

    inspection = RepositoryInspection(path=Path(path), name=name)
    if not inspection.path.exists():
        return inspection
    inspection.exists = True
    if not executor.is_repository(inspection.path):
        return inspection
    inspection.is_repository = True

    try:
        inspection.branch = await executor.inspect_branch(inspection.path)
        inspection.changes = await executor.inspect_changes(inspection.path)
        divergence = await executor.inspect_divergence(inspection.path)
    except RepositoryStateError as exc:
        inspection.error = str(exc)
        return inspection
    if divergence is not None:
        inspection.ahead, inspection.behind = divergence
    return inspection


async def inspect_projects(
    projects: Sequence[ResolvedProject],
    executor: GitOperationExecutor,
    scheduler: OperationScheduler,
) -> list[RepositoryInspection]:
    async def _inspect(project: ResolvedProject) -> RepositoryInspection:
        return await inspect_repository(executor, project.local_path, project.name)

    return await scheduler.map(projects, _inspect, label=lambda project: project.name)


async def inspect_paths(
    paths: Sequence[Path],
    executor: GitOperationExecutor,
    scheduler: OperationScheduler,
    *,
    root: Path | None = None,
) -> list[RepositoryInspection]:
    """Inspect arbitrary repository paths, naming each relative to ``root``."""

    def _name(path: Path) -> str:
        if root is not None:
            try:
                return str(path.relative_to(root)) or path.name
            except ValueError:
                pass
        return path.name

    async def _inspect(path: Path) -> RepositoryInspection:
        return await inspect_repository(executor, path, _name(path))

    return await scheduler.map(paths, _inspect, label=str)


def discover_repositories(root: Path, max_depth: int = 5) -> list[Path]:
    """Find git repositories below ``root`` without descending into them."""

    found: list[Path] = []

    def _walk(directory: Path, depth: int) -> None:
        if depth > max_depth:
            return
        if (directory / ".git").is_dir():
            found.append(directory)
            return
        try:
            entries = sorted(os.scandir(directory), key=lambda entry: entry.name)
        except OSError as exc:
            logger.debug("Skipping unreadable directory", extra={"path": str(directory), "error": str(exc)})
            return
        for entry in entries:
            if entry.name in SKIPPED_DIRECTORIES:
                continue
            if entry.is_dir(follow_symlinks=False):
                _walk(Path(entry.path), depth + 1)

    _walk(Path(root), 0)
    return found


__all__ = [
    "RepositoryInspection",
    "SKIPPED_DIRECTORIES",
    "discover_repositories",
    "inspect_paths",
    "inspect_projects",
    "inspect_repository",
]
