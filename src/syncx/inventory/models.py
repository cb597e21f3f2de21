"""Inventory document models and flattened project records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

STANDALONE_GROUP = "Standalone"


class Project(BaseModel):
    """A repository declared in the inventory."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(default="", description="Display name of the project.")
    url: str = Field(default="", description="Source URL as written in the inventory.")

    @field_validator("name", "url", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()


class Group(BaseModel):
    """A named group holding projects and nested subgroups."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(default="", description="Group name, joined with '/' for nested groups.")
    skip: bool = Field(default=False, description="Exclude this group and its subtree.")
    projects: list[Project] = Field(default_factory=list)
    groups: list[Group] = Field(default_factory=list)

    @field_validator("projects", "groups", mode="before")
    @classmethod
    def _ensure_list(cls, value: Any):  # type: ignore[override]
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            return list(value)
        raise ValueError("Group projects and groups must be sequences")


class InventoryRoot(BaseModel):
    """Wrapper used by the ``{"root": {...}}`` inventory layout."""

    model_config = ConfigDict(extra="ignore")

    groups: list[Group] = Field(default_factory=list)
    projects: list[Project] = Field(default_factory=list)


class Inventory(BaseModel):
    """Root inventory document.

    Both the legacy layout (``groups``/``projects`` at the top level) and the
    ``root`` wrapper are accepted; ``root`` wins when present.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    physical_location: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "physical_location",
            "physicalLocation",
            "physical-location",
            "phisical-location",
        ),
    )
    root: InventoryRoot | None = None
    groups: list[Group] = Field(default_factory=list)
    projects: list[Project] = Field(default_factory=list)

    @field_validator("groups", "projects", mode="before")
    @classmethod
    def _ensure_list(cls, value: Any):  # type: ignore[override]
        if value is None:
            return []
        return value

    @property
    def top_groups(self) -> list[Group]:
        return self.root.groups if self.root is not None else self.groups

    @property
    def top_projects(self) -> list[Project]:
        return self.root.projects if self.root is not None else self.projects


@dataclass(frozen=True, slots=True)
class ProjectRecord:
    """A flattened project as collected from the inventory."""

    name: str
    source_url: str
    group: str

    @property
    def key(self) -> tuple[str, str]:
        return (self.name, self.source_url)


__all__ = [
    "Group",
    "Inventory",
    "InventoryRoot",
    "Project",
    "ProjectRecord",
    "STANDALONE_GROUP",
]
