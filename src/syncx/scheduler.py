"""Bounded-concurrency fan-out of git operations."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Protocol, Sequence, TypeVar

from .config import MAX_PARALLEL, MIN_PARALLEL
from .git.executor import GitOperationExecutor
from .git.models import OperationResult
from .paths import ResolvedProject

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class ProgressSink(Protocol):
    """Receives one ``advance`` per completed work item."""

    def advance(self, label: str) -> None:
        ...


class NullProgress:
    def advance(self, label: str) -> None:
        return None


class LoggingProgress:
    """Progress sink that logs ``completed/total`` at debug level."""

    def __init__(self, total: int | None = None, *, log: logging.Logger | None = None) -> None:
        self.total = total
        self.completed = 0
        self._log = log or logger

    def advance(self, label: str) -> None:
        self.completed += 1
        if self.total:
            self._log.debug("Progress %s/%s: %s", self.completed, self.total, label)
        else:
            self._log.debug("Completed %s: %s", self.completed, label)


class OperationScheduler:
    """Run work items on a fixed pool of ``concurrency`` asyncio workers.

    Each worker awaits one operation to completion before taking the next
    item from the shared queue, so no more than ``concurrency`` git processes
    are alive at once.
    """

    def __init__(
        self,
        executor: GitOperationExecutor,
        concurrency: int,
        *,
        progress: ProgressSink | None = None,
    ) -> None:
        if not MIN_PARALLEL <= concurrency <= MAX_PARALLEL:
            raise ValueError(f"concurrency must be between {MIN_PARALLEL} and {MAX_PARALLEL}")
        self._executor = executor
        self._concurrency = concurrency
        self._progress = progress or NullProgress()

    @property
    def concurrency(self) -> int:
        return self._concurrency

    def _advance(self, label: str) -> None:
        try:
            self._progress.advance(label)
        except Exception:  # noqa: BLE001 - progress output never affects results
            logger.warning("Progress sink raised; continuing", exc_info=True)

    async def map(
        self,
        items: Sequence[T],
        operation: Callable[[T], Awaitable[R]],
        *,
        label: Callable[[T], str] = str,
    ) -> list[R]:
        """Apply ``operation`` to every item; results keep the input order."""

        if not items:
            return []

        queue: asyncio.Queue[tuple[int, T]] = asyncio.Queue()
        for index, item in enumerate(items):
            queue.put_nowait((index, item))
        results: list[R | None] = [None] * len(items)

        async def _worker() -> None:
            while True:
                try:
                    index, item = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                try:
                    results[index] = await operation(item)
                finally:
                    queue.task_done()
                self._advance(label(item))

        workers = min(self._concurrency, len(items))
        await asyncio.gather(*(_worker() for _ in range(workers)))
        return results  # type: ignore[return-value]

    async def run(
        self, to_clone: Sequence[ResolvedProject], to_pull: Sequence[ResolvedProject]
    ) -> list[OperationResult]:
        """Process every clone and pull item exactly once.

        Clone items go through ``clone`` directly; pull items go through
        ``sync_project`` so their on-disk state is classified first.
        """

        work: list[tuple[str, ResolvedProject]] = [("clone", project) for project in to_clone]
        work.extend(("pull", project) for project in to_pull)
        if not work:
            return []

        logger.info(
            "Dispatching git operations",
            extra={"clone": len(to_clone), "pull": len(to_pull), "concurrency": self._concurrency},
        )

        async def _dispatch(item: tuple[str, ResolvedProject]) -> OperationResult:
            kind, project = item
            try:
                if kind == "clone":
                    return await self._executor.clone(project)
                return await self._executor.sync_project(project)
            except OSError as exc:
                logger.error("Could not start git", extra={"project": project.name, "error": str(exc)})
                return OperationResult(
                    project=project,
                    success=False,
                    is_clone=kind == "clone",
                    message=f"Could not start git: {exc}",
                )

        return await self.map(work, _dispatch, label=lambda item: item[1].name)


__all__ = [
    "LoggingProgress",
    "NullProgress",
    "OperationScheduler",
    "ProgressSink",
]
