"""Classification of git's human-readable and porcelain output."""

from __future__ import annotations

from .models import ChangeCounts

UP_TO_DATE_MARKERS = ("Already up to date", "Already up-to-date")

# Messages git prints when ``pull --ff-only`` refuses to create a merge.
FAST_FORWARD_FAILURE_MARKERS = (
    "Not possible to fast-forward",
    "Diverging branches can't be fast-forwarded",
    "have diverged",
    "non-fast-forward",
)


def is_up_to_date(text: str) -> bool:
    return any(marker in text for marker in UP_TO_DATE_MARKERS)


def is_fast_forward_failure(text: str) -> bool:
    return any(marker in text for marker in FAST_FORWARD_FAILURE_MARKERS)


def parse_porcelain(text: str) -> ChangeCounts:
    """Count changes in ``git status --porcelain`` output.

    Each line starts with a two-character ``XY`` code: ``X`` is the index
    status and ``Y`` the work-tree status. A single line can count as both
    staged and modified.
    """

    counts = ChangeCounts()
    for line in text.splitlines():
        if len(line) < 2:
            continue
        index_status, work_tree_status = line[0], line[1]
        if index_status == "?" and work_tree_status == "?":
            counts.untracked += 1
            continue
        if index_status not in (" ", "?"):
            counts.staged += 1
        if work_tree_status in ("M", "D"):
            counts.modified += 1
    return counts


def parse_commit_hash(text: str) -> str | None:
    value = text.strip().splitlines()[0].strip() if text.strip() else ""
    return value or None


__all__ = [
    "FAST_FORWARD_FAILURE_MARKERS",
    "UP_TO_DATE_MARKERS",
    "is_fast_forward_failure",
    "is_up_to_date",
    "parse_commit_hash",
    "parse_porcelain",
]
