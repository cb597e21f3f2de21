from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path

from syncx.config import SyncSettings
from syncx.git import FakeGitRunner, GitCommandResult, GitOperationExecutor
from syncx.inventory import Inventory, collect_projects
from syncx.paths import ResolvedProject, resolve_projects
from syncx.reconcile import plan_operations, reconcile
from syncx.scheduler import OperationScheduler
from syncx.tracking import Tracker

NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)


def project(base: Path, name: str, group: str = "team-a", folder: str | None = None) -> ResolvedProject:
    return ResolvedProject(
        name=name,
        source_url=f"gitlab.com:org/{name}.git",
        group=group,
        clone_url=f"git@gitlab.com:org/{name}.git",
        local_path=base / "projects" / (folder or name),
    )


def tracked(projects: list[ResolvedProject]) -> Tracker:
    tracker = Tracker()
    for item in projects:
        tracker.upsert(item, status="cloned", commit_hash="aaa", timestamp=NOW)
    return tracker


def test_reconcile_is_idempotent(tmp_path: Path) -> None:
    current = [project(tmp_path, "svc"), project(tmp_path, "api")]
    tracker = tracked(current)

    first = reconcile(current, tracker)
    second = reconcile(current, tracker)

    for diff in (first, second):
        assert diff.new == [] and diff.removed == [] and diff.modified == []
        assert [item.name for item in diff.unchanged] == ["svc", "api"]
        assert not diff.has_changes


def test_duplicate_inventory_entries_collapse(tmp_path: Path) -> None:
    inventory = Inventory.model_validate(
        {
            "groups": [
                {"name": "first", "projects": [{"name": "svc", "url": "gitlab.com:org/svc.git"}]},
                {"name": "second", "projects": [{"name": "svc", "url": "gitlab.com:org/svc.git"}]},
            ]
        }
    )
    resolved = resolve_projects(collect_projects(inventory), SyncSettings(), tmp_path)

    diff = reconcile(resolved, Tracker())

    assert len(diff.new) == 1
    assert diff.new[0].group == "first"


def test_path_change_is_modified(tmp_path: Path) -> None:
    tracker = tracked([project(tmp_path, "x", group="a", folder="a/x")])
    current = [project(tmp_path, "x", group="b", folder="b/x")]

    diff = reconcile(current, tracker)

    assert [item.local_path for item in diff.modified] == [tmp_path / "projects" / "b" / "x"]
    assert diff.unchanged == []


def test_removed_projects_appear_once(tmp_path: Path) -> None:
    gone = project(tmp_path, "gone")
    tracker = tracked([project(tmp_path, "svc"), gone])

    diff = reconcile([project(tmp_path, "svc")], tracker, fingerprint="f00")

    assert diff.removed == [gone]
    assert tracker.inventory_hash == "f00"


def test_filtered_keeps_removed(tmp_path: Path) -> None:
    gone = project(tmp_path, "gone", group="b")
    tracker = tracked([gone])
    diff = reconcile([project(tmp_path, "svc", group="a"), project(tmp_path, "api", group="b")], tracker)

    scoped = diff.filtered("b")

    assert [item.name for item in scoped.new] == ["api"]
    assert scoped.removed == [gone]


def test_plan_operations_without_remote_check(tmp_path: Path) -> None:
    missing_new = project(tmp_path, "new-missing")
    existing_new = project(tmp_path, "new-existing")
    existing_new.local_path.mkdir(parents=True)
    unchanged_repo = project(tmp_path, "repo")
    (unchanged_repo.local_path / ".git").mkdir(parents=True)
    unchanged_missing = project(tmp_path, "vanished")
    moved = project(tmp_path, "moved", folder="elsewhere/moved")
    occupied = project(tmp_path, "occupied")
    occupied.local_path.mkdir(parents=True)

    tracker = tracked([unchanged_repo, unchanged_missing, project(tmp_path, "moved"), occupied])
    diff = reconcile([missing_new, existing_new, unchanged_repo, unchanged_missing, moved, occupied], tracker)

    runner = FakeGitRunner()
    executor = GitOperationExecutor(runner)
    plan = asyncio.run(plan_operations(diff, executor, OperationScheduler(executor, 2), skip_check=True))

    assert [item.name for item in plan.to_clone] == ["new-missing", "vanished"]
    assert [item.name for item in plan.to_pull] == ["new-existing", "moved", "occupied"]
    assert [item.name for item in plan.up_to_date] == ["repo"]
    assert runner.invocations == []


def test_plan_operations_with_remote_check(tmp_path: Path) -> None:
    behind = project(tmp_path, "behind")
    current = project(tmp_path, "current")
    for item in (behind, current):
        (item.local_path / ".git").mkdir(parents=True)

    def handler(args, cwd):
        if args == ("rev-parse", "HEAD"):
            return GitCommandResult(args=args, returncode=0, stdout="aaa\n", stderr="")
        if args == ("rev-parse", "@{upstream}"):
            remote = "bbb" if cwd == behind.local_path else "aaa"
            return GitCommandResult(args=args, returncode=0, stdout=f"{remote}\n", stderr="")
        return None

    runner = FakeGitRunner(handler=handler)
    executor = GitOperationExecutor(runner)
    diff = reconcile([behind, current], tracked([behind, current]))

    plan = asyncio.run(plan_operations(diff, executor, OperationScheduler(executor, 2), skip_check=False))

    assert [item.name for item in plan.to_pull] == ["behind"]
    assert [item.name for item in plan.up_to_date] == ["current"]
    assert {check.project.name: check.has_changes for check in plan.remote_checks} == {
        "behind": True,
        "current": False,
    }
    assert runner.commands().count("fetch") == 2


def test_remote_check_error_does_not_abort_siblings(tmp_path: Path) -> None:
    broken = project(tmp_path, "broken")
    healthy = [project(tmp_path, f"svc{index}") for index in range(3)]
    for item in [broken, *healthy]:
        (item.local_path / ".git").mkdir(parents=True)

    def handler(args, cwd):
        if cwd == broken.local_path:
            raise FileNotFoundError(2, "No such file or directory", str(cwd))
        if args[0] == "rev-parse":
            return GitCommandResult(args=args, returncode=0, stdout="aaa\n", stderr="")
        return None

    runner = FakeGitRunner(handler=handler)
    executor = GitOperationExecutor(runner)
    everything = [broken, *healthy]
    diff = reconcile(everything, tracked(everything))

    plan = asyncio.run(plan_operations(diff, executor, OperationScheduler(executor, 2), skip_check=False))

    assert [item.name for item in plan.to_pull] == ["broken"]
    assert [item.name for item in plan.up_to_date] == ["svc0", "svc1", "svc2"]
    errors = {check.project.name: check.error for check in plan.remote_checks}
    assert errors["broken"].startswith("Could not run git")
    assert errors["svc0"] is None
