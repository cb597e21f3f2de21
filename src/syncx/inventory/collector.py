"""Flatten a nested inventory into an ordered list of project records."""

from __future__ import annotations

from typing import Iterable

from .models import STANDALONE_GROUP, Group, Inventory, Project, ProjectRecord


def collect_projects(inventory: Inventory) -> list[ProjectRecord]:
    """Collect every project in declaration order.

    Skipped groups drop their whole subtree. Projects missing a name or URL
    are filtered out, and only the first occurrence of a ``(name, url)`` key
    is kept.
    """

    records: list[ProjectRecord] = []
    seen: set[tuple[str, str]] = set()

    def _add(project: Project, group: str) -> None:
        if not project.name or not project.url:
            return
        record = ProjectRecord(name=project.name, source_url=project.url, group=group)
        if record.key in seen:
            return
        seen.add(record.key)
        records.append(record)

    def _walk(groups: Iterable[Group], parent: str) -> None:
        for group in groups:
            if group.skip:
                continue
            path = f"{parent}/{group.name}" if parent else group.name
            for project in group.projects:
                _add(project, path)
            _walk(group.groups, path)

    _walk(inventory.top_groups, "")
    for project in inventory.top_projects:
        _add(project, STANDALONE_GROUP)

    return records


def filter_by_group(records: Iterable[ProjectRecord], group: str | None) -> list[ProjectRecord]:
    """Keep records whose group matches exactly; no filter when ``group`` is empty."""

    if not group:
        return list(records)
    return [record for record in records if record.group == group]


def unique_groups(records: Iterable[ProjectRecord]) -> list[str]:
    groups: list[str] = []
    for record in records:
        if record.group not in groups:
            groups.append(record.group)
    return groups


__all__ = ["collect_projects", "filter_by_group", "unique_groups"]
