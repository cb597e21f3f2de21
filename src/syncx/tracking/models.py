"""Persisted tracking documents."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from ..paths import ResolvedProject

TrackedStatus = Literal["cloned", "updated", "up-to-date", "error"]


class TrackedProject(BaseModel):
    """A project that has been synchronised at least once."""

    model_config = ConfigDict(extra="ignore")

    name: str
    url: str
    group: str = ""
    local_path: str = ""
    git_url: str = ""
    last_cloned: datetime | None = None
    last_updated: datetime | None = None
    last_commit_hash: str = ""
    status: TrackedStatus = "cloned"

    @property
    def key(self) -> tuple[str, str]:
        return (self.name, self.url)

    def to_resolved(self) -> ResolvedProject:
        return ResolvedProject(
            name=self.name,
            source_url=self.url,
            group=self.group,
            clone_url=self.git_url,
            local_path=Path(self.local_path),
        )


class Tracker(BaseModel):
    """Root tracking document stored inside the output directory."""

    model_config = ConfigDict(extra="ignore")

    last_sync: datetime | None = None
    output_directory: str = ""
    inventory_file: str = ""
    inventory_hash: str = ""
    projects: list[TrackedProject] = Field(default_factory=list)

    def get(self, key: tuple[str, str]) -> TrackedProject | None:
        for tracked in self.projects:
            if tracked.key == key:
                return tracked
        return None

    def upsert(
        self,
        project: ResolvedProject,
        *,
        status: TrackedStatus,
        commit_hash: str | None,
        timestamp: datetime,
    ) -> TrackedProject:
        """Create or refresh the entry for ``project``.

        ``last_cloned`` is only set when the entry is created.
        """

        tracked = self.get(project.key)
        if tracked is None:
            tracked = TrackedProject(
                name=project.name,
                url=project.source_url,
                last_cloned=timestamp,
            )
            self.projects.append(tracked)
        tracked.group = project.group
        tracked.local_path = str(project.local_path)
        tracked.git_url = project.clone_url
        tracked.last_updated = timestamp
        if commit_hash:
            tracked.last_commit_hash = commit_hash
        tracked.status = status
        return tracked

    def mark_error(self, key: tuple[str, str], timestamp: datetime) -> bool:
        """Flag an existing entry as failed; untracked projects are left alone."""

        tracked = self.get(key)
        if tracked is None:
            return False
        tracked.status = "error"
        tracked.last_updated = timestamp
        return True

    def remove(self, key: tuple[str, str]) -> bool:
        before = len(self.projects)
        self.projects = [tracked for tracked in self.projects if tracked.key != key]
        return len(self.projects) != before


__all__ = ["TrackedProject", "TrackedStatus", "Tracker"]
