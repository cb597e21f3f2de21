from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from syncx.git import FakeGitRunner, GitCommandResult, GitOperationExecutor
from syncx.paths import ResolvedProject
from syncx.scheduler import LoggingProgress, OperationScheduler


def make_projects(tmp_path: Path, count: int) -> list[ResolvedProject]:
    return [
        ResolvedProject(
            name=f"svc-{index}",
            source_url=f"gitlab.com:org/svc-{index}.git",
            group="team-a",
            clone_url=f"git@gitlab.com:org/svc-{index}.git",
            local_path=tmp_path / "projects" / f"svc-{index}",
        )
        for index in range(count)
    ]


def cloning_handler(args, cwd):
    if args[0] == "clone":
        (Path(args[-1]) / ".git").mkdir(parents=True)
    if args == ("rev-parse", "HEAD"):
        return GitCommandResult(args=args, returncode=0, stdout="abc\n", stderr="")
    return None


class RecordingProgress:
    def __init__(self) -> None:
        self.labels: list[str] = []

    def advance(self, label: str) -> None:
        self.labels.append(label)


@pytest.mark.parametrize("concurrency", [1, 3, 5])
def test_in_flight_operations_never_exceed_limit(tmp_path: Path, concurrency: int) -> None:
    projects = make_projects(tmp_path, 12)
    runner = FakeGitRunner(handler=cloning_handler, delay=0.01)
    scheduler = OperationScheduler(GitOperationExecutor(runner), concurrency)

    results = asyncio.run(scheduler.run(projects, []))

    assert runner.max_in_flight == concurrency
    assert len(results) == 12
    assert all(result.success for result in results)


def test_every_item_processed_exactly_once(tmp_path: Path) -> None:
    to_clone = make_projects(tmp_path / "a", 4)
    to_pull = make_projects(tmp_path / "b", 3)
    for project in to_pull:
        (project.local_path / ".git").mkdir(parents=True)
    progress = RecordingProgress()
    runner = FakeGitRunner(handler=cloning_handler)
    scheduler = OperationScheduler(GitOperationExecutor(runner), 4, progress=progress)

    results = asyncio.run(scheduler.run(to_clone, to_pull))

    assert sorted(result.project.local_path for result in results) == sorted(
        project.local_path for project in to_clone + to_pull
    )
    assert sum(result.is_clone for result in results) == 4
    assert runner.commands().count("clone") == 4
    assert runner.commands().count("pull") == 3
    assert len(progress.labels) == 7


def test_empty_work_list_runs_nothing(tmp_path: Path) -> None:
    runner = FakeGitRunner()
    scheduler = OperationScheduler(GitOperationExecutor(runner), 5)

    assert asyncio.run(scheduler.run([], [])) == []
    assert runner.invocations == []


def test_progress_errors_do_not_stop_work(tmp_path: Path) -> None:
    class BrokenProgress:
        def advance(self, label: str) -> None:
            raise RuntimeError("terminal went away")

    projects = make_projects(tmp_path, 3)
    scheduler = OperationScheduler(
        GitOperationExecutor(FakeGitRunner(handler=cloning_handler)), 2, progress=BrokenProgress()
    )

    results = asyncio.run(scheduler.run(projects, []))

    assert len(results) == 3


def test_map_preserves_input_order(tmp_path: Path) -> None:
    scheduler = OperationScheduler(GitOperationExecutor(FakeGitRunner()), 3)

    async def slow_double(value: int) -> int:
        await asyncio.sleep(0.001 * (5 - value))
        return value * 2

    assert asyncio.run(scheduler.map([1, 2, 3, 4], slow_double)) == [2, 4, 6, 8]


def test_logging_progress_counts() -> None:
    progress = LoggingProgress(total=2)
    progress.advance("a")
    progress.advance("b")

    assert progress.completed == 2


@pytest.mark.parametrize("concurrency", [0, 21])
def test_concurrency_bounds(concurrency: int) -> None:
    with pytest.raises(ValueError):
        OperationScheduler(GitOperationExecutor(FakeGitRunner()), concurrency)
