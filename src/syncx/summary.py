"""Aggregate per-project outcomes into run totals."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .git.models import OperationResult


@dataclass(slots=True)
class Summary:
    total: int = 0
    success: int = 0
    failure: int = 0
    cloned: int = 0
    updated: int = 0
    skipped: int = 0
    empty: int = 0
    failed_projects: list[OperationResult] = field(default_factory=list)
    empty_projects: list[OperationResult] = field(default_factory=list)
    duration: float = 0.0

    @property
    def has_failures(self) -> bool:
        return self.failure > 0

    def as_dict(self) -> dict[str, object]:
        return {
            "total": self.total,
            "success": self.success,
            "failure": self.failure,
            "cloned": self.cloned,
            "updated": self.updated,
            "skipped": self.skipped,
            "empty": self.empty,
            "failed_projects": [result.project.name for result in self.failed_projects],
            "empty_projects": [result.project.name for result in self.empty_projects],
            "duration": round(self.duration, 3),
        }


def summarize(results: Iterable[OperationResult], up_to_date_count: int, *, duration: float = 0.0) -> Summary:
    """Fold results into counts.

    ``skipped`` is taken from ``up_to_date_count`` because up-to-date projects
    never reach the scheduler.
    """

    summary = Summary(skipped=up_to_date_count, duration=duration)
    count = 0
    for result in results:
        count += 1
        if result.success:
            summary.success += 1
            if result.is_clone:
                summary.cloned += 1
            else:
                summary.updated += 1
        elif result.is_empty:
            summary.empty += 1
            summary.empty_projects.append(result)
        else:
            summary.failure += 1
            summary.failed_projects.append(result)
    summary.total = count + up_to_date_count
    return summary


__all__ = ["Summary", "summarize"]
