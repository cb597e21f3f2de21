"""Single-repository git operations and outcome classification."""

from __future__ import annotations

import logging
import shutil
import time
from pathlib import Path
from typing import Callable

from ..config import SyncSettings
from ..paths import ResolvedProject
from .models import ChangeCounts, OperationResult, RemoteCheck, RepositoryState, RepositoryStateError
from .output import is_up_to_date, parse_commit_hash, parse_porcelain
from .retry import RetryPolicy, default_retry_policy
from .runner import GitCommandResult, GitRunner

logger = logging.getLogger(__name__)

CLONE_ARGS = ("clone", "--depth=1", "--single-branch", "--quiet")
FETCH_ALL_REFSPEC = "+refs/heads/*:refs/remotes/origin/*"
PULL_ARGS = ("pull", "--ff-only", "--no-stat", "--quiet")
UPSTREAM_CANDIDATES = ("@{upstream}", "origin/main", "origin/master")


def _short(commit: str | None) -> str:
    return commit[:8] if commit else "none"


class GitOperationExecutor:
    """Run clone, pull and inspection commands against one repository at a time.

    Every command goes through ``runner`` with an explicit timeout. Failures
    are reported as ``OperationResult`` values rather than raised, except for
    the inspection helpers which raise ``RepositoryStateError``.
    """

    def __init__(
        self,
        runner: GitRunner,
        *,
        clone_timeout: float = 60.0,
        fetch_timeout: float = 30.0,
        inspect_timeout: float = 20.0,
        retry_policy: RetryPolicy | None = None,
        dry_run: bool = False,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._runner = runner
        self._clone_timeout = clone_timeout
        self._fetch_timeout = fetch_timeout
        self._inspect_timeout = inspect_timeout
        self._retry_policy = retry_policy or default_retry_policy()
        self._dry_run = dry_run
        self._clock = clock or time.monotonic

    @classmethod
    def from_settings(cls, settings: SyncSettings, runner: GitRunner | None = None) -> GitOperationExecutor:
        if runner is None:
            runner = GitRunner(Path(settings.git_path) if settings.git_path else None)
        return cls(
            runner,
            clone_timeout=settings.clone_timeout,
            fetch_timeout=settings.fetch_timeout,
            inspect_timeout=settings.inspect_timeout,
            dry_run=settings.dry_run,
        )

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    @property
    def runner(self) -> GitRunner:
        return self._runner

    async def _git(self, *args: str, cwd: Path | None = None, timeout: float) -> GitCommandResult:
        logger.debug("Running git", extra={"git_args": list(args), "cwd": str(cwd) if cwd else None})
        return await self._runner.run(*args, cwd=cwd, timeout=timeout)

    async def _run_with_retry(
        self, operation: str, args: tuple[str, ...], *, cwd: Path, timeout: float
    ) -> GitCommandResult:
        result = await self._git(*args, cwd=cwd, timeout=timeout)
        attempt = 1
        while not result.ok:
            decision = self._retry_policy.next_command(operation, result, attempt)
            if decision is None:
                break
            rule, fallback = decision
            logger.warning(
                "Retrying git %s with fallback command",
                operation,
                extra={"rule": rule.name, "path": str(cwd), "error": result.describe_failure()},
            )
            result = await self._git(*fallback, cwd=cwd, timeout=timeout)
            attempt += 1
        return result

    # Inspection -----------------------------------------------------------------

    @staticmethod
    def is_repository(path: Path) -> bool:
        return (Path(path) / ".git").exists()

    async def current_commit_hash(self, path: Path) -> str | None:
        result = await self._git("rev-parse", "HEAD", cwd=path, timeout=self._inspect_timeout)
        if not result.ok:
            return None
        return parse_commit_hash(result.stdout)

    async def is_empty_repository(self, path: Path) -> bool:
        """A repository is empty when ``HEAD`` does not resolve to a commit."""

        if not self.is_repository(path):
            return False
        result = await self._git("rev-parse", "HEAD", cwd=path, timeout=self._inspect_timeout)
        return not result.ok and not result.timed_out

    async def inspect_branch(self, path: Path) -> str:
        """Return the checked-out branch name, or ``""`` for a detached HEAD."""

        self._require_repository(path)
        result = await self._git("branch", "--show-current", cwd=path, timeout=self._inspect_timeout)
        if not result.ok:
            raise RepositoryStateError(
                RepositoryStateError.COMMAND_FAILED,
                path,
                f"Failed to read branch of {path}: {result.describe_failure()}",
            )
        return result.stdout.strip()

    async def inspect_changes(self, path: Path) -> ChangeCounts:
        self._require_repository(path)
        result = await self._git("status", "--porcelain", cwd=path, timeout=self._inspect_timeout)
        if not result.ok:
            raise RepositoryStateError(
                RepositoryStateError.COMMAND_FAILED,
                path,
                f"Failed to read status of {path}: {result.describe_failure()}",
            )
        return parse_porcelain(result.stdout)

    async def inspect_divergence(self, path: Path) -> tuple[int, int] | None:
        """Return ``(ahead, behind)`` relative to upstream, or ``None`` without one."""

        self._require_repository(path)
        result = await self._git(
            "rev-list", "--left-right", "--count", "HEAD...@{upstream}", cwd=path, timeout=self._inspect_timeout
        )
        if not result.ok:
            return None
        parts = result.stdout.split()
        if len(parts) != 2 or not all(part.isdigit() for part in parts):
            return None
        return int(parts[0]), int(parts[1])

    def _require_repository(self, path: Path) -> None:
        if not self.is_repository(path):
            raise RepositoryStateError(
                RepositoryStateError.NOT_A_REPOSITORY, path, f"Not a git repository: {path}"
            )

    async def classify(self, path: Path) -> tuple[RepositoryState, str | None]:
        """Return the local state of ``path`` and its HEAD commit when known."""

        path = Path(path)
        if not path.exists():
            return RepositoryState.MISSING, None
        if not self.is_repository(path):
            return RepositoryState.NOT_A_REPOSITORY, None
        result = await self._git("rev-parse", "HEAD", cwd=path, timeout=self._inspect_timeout)
        if result.timed_out:
            raise RepositoryStateError(
                RepositoryStateError.COMMAND_FAILED, path, f"Timed out reading HEAD of {path}"
            )
        if not result.ok:
            return RepositoryState.EMPTY, None
        return RepositoryState.READY, parse_commit_hash(result.stdout)

    async def check_remote(self, project: ResolvedProject) -> RemoteCheck:
        """Fetch and compare local ``HEAD`` with the upstream branch.

        When no upstream can be resolved the repository is reported as
        unchanged. A git process that cannot be started is reported as an
        error for this project only.
        """

        try:
            return await self._check_remote(project)
        except OSError as exc:
            logger.error(
                "Could not run git for remote check",
                extra={"project": project.name, "path": str(project.local_path), "error": str(exc)},
            )
            return RemoteCheck(project=project, has_changes=False, error=f"Could not run git: {exc}")

    async def _check_remote(self, project: ResolvedProject) -> RemoteCheck:
        path = project.local_path
        try:
            state, local_hash = await self.classify(path)
        except RepositoryStateError as exc:
            return RemoteCheck(project=project, has_changes=False, error=str(exc))
        if state is not RepositoryState.READY:
            return RemoteCheck(project=project, has_changes=False, error=f"Repository state is {state.value}")

        fetch = await self._git("fetch", "--quiet", cwd=path, timeout=self._inspect_timeout)
        if not fetch.ok:
            logger.warning(
                "Fetch failed during remote check",
                extra={"project": project.name, "error": fetch.describe_failure()},
            )
            return RemoteCheck(
                project=project,
                has_changes=False,
                commit_hash=local_hash,
                error=f"fetch failed: {fetch.describe_failure()}",
            )

        for ref in UPSTREAM_CANDIDATES:
            result = await self._git("rev-parse", ref, cwd=path, timeout=self._inspect_timeout)
            if result.ok:
                remote_hash = parse_commit_hash(result.stdout)
                has_changes = remote_hash != local_hash
                logger.debug(
                    "Compared local and remote heads",
                    extra={
                        "project": project.name,
                        "local": _short(local_hash),
                        "remote": _short(remote_hash),
                        "has_changes": has_changes,
                    },
                )
                return RemoteCheck(project=project, has_changes=has_changes, commit_hash=local_hash)

        logger.warning("Could not determine remote head", extra={"project": project.name, "path": str(path)})
        return RemoteCheck(project=project, has_changes=False, commit_hash=local_hash)

    # Operations -----------------------------------------------------------------

    async def clone(self, project: ResolvedProject) -> OperationResult:
        """Shallow-clone ``project``; never retried."""

        start = self._clock()
        path = project.local_path
        if self._dry_run:
            return OperationResult(
                project=project,
                success=True,
                is_clone=True,
                message=f"Would clone {project.clone_url} -> {path}",
            )

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            return self._failure(project, True, f"Failed to create directory {path.parent}: {exc}", start)

        existed = path.exists()
        logger.info("Cloning repository", extra={"project": project.name, "url": project.clone_url, "path": str(path)})
        result = await self._git(*CLONE_ARGS, project.clone_url, str(path), timeout=self._clone_timeout)
        if not result.ok:
            if not existed:
                self._discard_partial_clone(project)
            return self._failure(
                project, True, f"Failed to clone {project.clone_url}: {result.describe_failure()}", start
            )
        if not self.is_repository(path):
            return self._failure(project, True, f"Clone completed but no git repository found at {path}", start)

        await self._widen_clone(project)
        commit_hash = await self.current_commit_hash(path)
        return OperationResult(
            project=project,
            success=True,
            is_clone=True,
            message=f"Cloned {project.clone_url}",
            duration=self._clock() - start,
            commit_hash=commit_hash,
        )

    def _discard_partial_clone(self, project: ResolvedProject) -> None:
        # a killed clone can leave a .git without HEAD behind
        path = project.local_path
        if not path.exists():
            return
        try:
            shutil.rmtree(path)
        except OSError as exc:
            logger.warning(
                "Could not remove partial clone",
                extra={"project": project.name, "path": str(path), "error": str(exc)},
            )
        else:
            logger.info("Removed partial clone", extra={"project": project.name, "path": str(path)})

    async def _widen_clone(self, project: ResolvedProject) -> None:
        path = project.local_path
        refspec = await self._git(
            "config", "remote.origin.fetch", FETCH_ALL_REFSPEC, cwd=path, timeout=self._inspect_timeout
        )
        if not refspec.ok:
            logger.warning(
                "Could not widen fetch refspec",
                extra={"project": project.name, "error": refspec.describe_failure()},
            )
        fetch = await self._git("fetch", "--all", "--quiet", cwd=path, timeout=self._fetch_timeout)
        if not fetch.ok:
            logger.warning(
                "Could not fetch all branches",
                extra={"project": project.name, "error": fetch.describe_failure()},
            )

    async def pull(self, project: ResolvedProject) -> OperationResult:
        """Update an existing repository, falling back per the retry policy."""

        start = self._clock()
        path = project.local_path
        if self._dry_run:
            return OperationResult(project=project, success=True, is_clone=False, message=f"Would pull {path}")

        try:
            state, before = await self.classify(path)
        except RepositoryStateError as exc:
            return self._failure(project, False, str(exc), start)
        if state is RepositoryState.EMPTY:
            return self._empty(project, start)
        if state is not RepositoryState.READY:
            return self._failure(project, False, f"Cannot pull {path}: {state.value}", start)
        return await self._pull_ready(project, before, start)

    async def _pull_ready(self, project: ResolvedProject, before: str | None, start: float) -> OperationResult:
        path = project.local_path
        fetch = await self._git("fetch", "--quiet", cwd=path, timeout=self._fetch_timeout)
        if not fetch.ok:
            logger.warning("Fetch failed before pull", extra={"project": project.name, "error": fetch.describe_failure()})

        result = await self._run_with_retry("pull", PULL_ARGS, cwd=path, timeout=self._fetch_timeout)
        if not result.ok:
            return self._failure(project, False, f"Failed to pull {path}: {result.describe_failure()}", start)

        after = await self.current_commit_hash(path)
        up_to_date = is_up_to_date(result.output) or (before is not None and before == after)
        if up_to_date:
            message = "Already up to date"
        else:
            message = f"Updated {_short(before)}..{_short(after)}"
        logger.info(message, extra={"project": project.name, "path": str(path)})
        return OperationResult(
            project=project,
            success=True,
            is_clone=False,
            message=message,
            duration=self._clock() - start,
            up_to_date=up_to_date,
            commit_hash=after,
        )

    async def sync_project(self, project: ResolvedProject) -> OperationResult:
        """Clone, pull or classify ``project`` depending on what is on disk."""

        start = self._clock()
        path = project.local_path
        if not path.exists():
            return await self.clone(project)
        if not self.is_repository(path):
            logger.warning("Directory exists but is not a git repository", extra={"path": str(path)})
            return self._failure(project, False, f"Directory exists but is not a git repository: {path}", start)
        if self._dry_run:
            return await self.pull(project)

        try:
            state, before = await self.classify(path)
        except RepositoryStateError as exc:
            return self._failure(project, False, str(exc), start)
        if state is RepositoryState.EMPTY:
            return self._empty(project, start)
        return await self._pull_ready(project, before, start)

    def _failure(self, project: ResolvedProject, is_clone: bool, message: str, start: float) -> OperationResult:
        logger.error(message, extra={"project": project.name, "path": str(project.local_path)})
        return OperationResult(
            project=project,
            success=False,
            is_clone=is_clone,
            message=message,
            duration=self._clock() - start,
        )

    def _empty(self, project: ResolvedProject, start: float) -> OperationResult:
        logger.warning("Repository has no commits", extra={"project": project.name, "path": str(project.local_path)})
        return OperationResult(
            project=project,
            success=False,
            is_clone=False,
            is_empty=True,
            message="Repository is empty (no commits)",
            duration=self._clock() - start,
        )


__all__ = ["GitOperationExecutor"]
