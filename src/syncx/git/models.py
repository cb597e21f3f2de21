"""Result records for git operations."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..paths import ResolvedProject


class RepositoryState(str, Enum):
    """Local state of a project directory before an operation."""

    MISSING = "missing"
    NOT_A_REPOSITORY = "not-a-repository"
    EMPTY = "empty-repository"
    READY = "ready"


class RepositoryStateError(RuntimeError):
    """Raised when a repository cannot be operated on.

    ``kind`` is one of ``not-a-repository``, ``empty-repository`` or
    ``command-failed``.
    """

    NOT_A_REPOSITORY = "not-a-repository"
    EMPTY_REPOSITORY = "empty-repository"
    COMMAND_FAILED = "command-failed"

    def __init__(self, kind: str, path: Path, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.path = path


@dataclass(slots=True)
class OperationResult:
    """Outcome of a single clone or pull against one project."""

    project: ResolvedProject
    success: bool
    is_clone: bool
    message: str
    duration: float = 0.0
    is_empty: bool = False
    up_to_date: bool = False
    commit_hash: str | None = None

    def __post_init__(self) -> None:
        if self.is_empty and self.success:
            raise ValueError("An operation result cannot be both empty and successful")

    @property
    def is_failure(self) -> bool:
        return not self.success and not self.is_empty


@dataclass(slots=True)
class ChangeCounts:
    modified: int = 0
    staged: int = 0
    untracked: int = 0

    @property
    def total(self) -> int:
        return self.modified + self.staged + self.untracked

    @property
    def has_changes(self) -> bool:
        return self.total > 0


@dataclass(slots=True)
class RemoteCheck:
    """Result of comparing local HEAD with the remote tracking branch."""

    project: ResolvedProject
    has_changes: bool
    commit_hash: str | None = None
    error: str | None = None


__all__ = [
    "ChangeCounts",
    "OperationResult",
    "RemoteCheck",
    "RepositoryState",
    "RepositoryStateError",
]
