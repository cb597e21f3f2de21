from __future__ import annotations

import hashlib
import json
import textwrap
from pathlib import Path

import pytest

from syncx.config import ConfigurationError
from syncx.inventory import (
    Inventory,
    InventoryLoadError,
    InventoryLoader,
    collect_projects,
    filter_by_group,
    load_inventory,
    unique_groups,
)


def write_json(path: Path, payload: dict) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_loader_reads_legacy_layout(tmp_path: Path) -> None:
    path = write_json(
        tmp_path / "inventory.json",
        {
            "physicalLocation": "/srv/repos",
            "groups": [{"name": "team-a", "projects": [{"name": "svc", "url": "gitlab.com:org/svc.git"}]}],
            "projects": [{"name": "tool", "url": "gitlab.com:org/tool.git"}],
        },
    )

    loaded = InventoryLoader(path).load()

    assert loaded.inventory.physical_location == "/srv/repos"
    assert [group.name for group in loaded.inventory.top_groups] == ["team-a"]
    assert loaded.fingerprint == hashlib.md5(path.read_bytes()).hexdigest()


def test_loader_reads_root_wrapper_and_misspelled_location(tmp_path: Path) -> None:
    path = write_json(
        tmp_path / "inventory.json",
        {
            "phisical-location": "~/code",
            "root": {"groups": [], "projects": [{"name": "tool", "url": "gitlab.com:org/tool.git"}]},
            "projects": [{"name": "ignored", "url": "gitlab.com:org/ignored.git"}],
        },
    )

    inventory = load_inventory(path).inventory

    assert inventory.physical_location == "~/code"
    assert [project.name for project in inventory.top_projects] == ["tool"]


def test_loader_reads_yaml(tmp_path: Path) -> None:
    path = tmp_path / "inventory.yaml"
    path.write_text(
        textwrap.dedent(
            """
            groups:
              - name: platform
                projects:
                  - name: api
                    url: gitlab.com:org/platform/api.git
            """
        ).strip(),
        encoding="utf-8",
    )

    records = collect_projects(load_inventory(path).inventory)

    assert [(record.name, record.group) for record in records] == [("api", "platform")]


def test_loader_reports_invalid_documents(tmp_path: Path) -> None:
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")

    with pytest.raises(InventoryLoadError) as excinfo:
        load_inventory(broken)
    assert isinstance(excinfo.value, ConfigurationError)

    with pytest.raises(InventoryLoadError):
        load_inventory(tmp_path / "missing.json")

    listing = write_json(tmp_path / "list.json", {"groups": "nope"})
    with pytest.raises(InventoryLoadError):
        load_inventory(listing)


def test_collect_projects_walks_nested_groups() -> None:
    inventory = Inventory.model_validate(
        {
            "groups": [
                {
                    "name": "Platform",
                    "projects": [{"name": "api", "url": "gitlab.com:org/api.git"}],
                    "groups": [
                        {"name": "Data", "projects": [{"name": "etl", "url": "gitlab.com:org/etl.git"}]},
                        {
                            "name": "Legacy",
                            "skip": True,
                            "projects": [{"name": "old", "url": "gitlab.com:org/old.git"}],
                            "groups": [{"name": "Deeper", "projects": [{"name": "older", "url": "x:y.git"}]}],
                        },
                    ],
                }
            ],
            "projects": [{"name": "tool", "url": "gitlab.com:org/tool.git"}],
        }
    )

    records = collect_projects(inventory)

    assert [(record.name, record.group) for record in records] == [
        ("api", "Platform"),
        ("etl", "Platform/Data"),
        ("tool", "Standalone"),
    ]


def test_collect_projects_deduplicates_first_occurrence_wins() -> None:
    inventory = Inventory.model_validate(
        {
            "groups": [
                {"name": "first", "projects": [{"name": "svc", "url": "gitlab.com:org/svc.git"}]},
                {
                    "name": "second",
                    "projects": [
                        {"name": "svc", "url": "gitlab.com:org/svc.git"},
                        {"name": "svc", "url": "gitlab.com:other/svc.git"},
                    ],
                },
            ]
        }
    )

    records = collect_projects(inventory)

    assert [(record.source_url, record.group) for record in records] == [
        ("gitlab.com:org/svc.git", "first"),
        ("gitlab.com:other/svc.git", "second"),
    ]


def test_collect_projects_drops_incomplete_entries() -> None:
    inventory = Inventory.model_validate(
        {
            "projects": [
                {"name": "", "url": "gitlab.com:org/a.git"},
                {"name": "b"},
                {"name": "c", "url": "gitlab.com:org/c.git"},
            ]
        }
    )

    assert [record.name for record in collect_projects(inventory)] == ["c"]


def test_group_filter_and_unique_groups() -> None:
    inventory = Inventory.model_validate(
        {
            "groups": [
                {"name": "a", "projects": [{"name": "one", "url": "h:o/one.git"}, {"name": "two", "url": "h:o/two.git"}]},
                {"name": "b", "projects": [{"name": "three", "url": "h:o/three.git"}]},
            ]
        }
    )
    records = collect_projects(inventory)

    assert unique_groups(records) == ["a", "b"]
    assert [record.name for record in filter_by_group(records, "b")] == ["three"]
    assert filter_by_group(records, None) == records
