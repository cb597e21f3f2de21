from __future__ import annotations

from pathlib import Path

import pytest

from syncx.config import ConfigurationError, SyncSettings
from syncx.inventory import ProjectRecord
from syncx.paths import (
    PathResolutionError,
    extract_repository_path,
    resolve_clone_url,
    resolve_local_path,
    resolve_project,
    resolve_projects,
    strip_organisation_prefixes,
)


@pytest.mark.parametrize(
    ("source", "protocol", "expected"),
    [
        ("gitlab.com:org/svc.git", "ssh", "git@gitlab.com:org/svc.git"),
        ("git@gitlab.com:org/svc.git", "ssh", "git@gitlab.com:org/svc.git"),
        ("deploy@example.com:org/svc.git", "ssh", "deploy@example.com:org/svc.git"),
        ("https://gitlab.com/org/svc.git", "ssh", "git@gitlab.com:org/svc.git"),
        ("https://gitlab.com/org/svc.git", "http", "https://gitlab.com/org/svc.git"),
        ("git@gitlab.com:org/svc.git", "http", "https://gitlab.com/org/svc.git"),
        ("gitlab.com:org/svc.git", "http", "https://gitlab.com/org/svc.git"),
        ("gitlab.com/org/svc.git", "http", "https://gitlab.com/org/svc.git"),
    ],
)
def test_resolve_clone_url(source: str, protocol: str, expected: str) -> None:
    assert resolve_clone_url(source, protocol) == expected


def test_resolve_clone_url_rejects_unknown_protocol() -> None:
    with pytest.raises(ConfigurationError):
        resolve_clone_url("gitlab.com:org/svc.git", "ftp")


def test_extract_repository_path() -> None:
    assert extract_repository_path("gitlab.com:org/team/svc.git") == "org/team/svc"
    assert extract_repository_path("ssh://git@host:2222/org/svc.git") == "org/svc"
    assert extract_repository_path("https://host/org/svc/") == "org/svc"
    assert extract_repository_path("svc") == ""


def test_strip_organisation_prefixes() -> None:
    assert strip_organisation_prefixes("Org/Company/team/svc", ["org", "company"]) == "team/svc"
    assert strip_organisation_prefixes("team/org/svc", ["org"]) == "team/org/svc"
    assert strip_organisation_prefixes("org/company", ["org", "company"]) == "org/company"


def test_resolve_local_path_primary_strategy(tmp_path: Path) -> None:
    assert resolve_local_path("gitlab.com:org/svc.git", "team-a", tmp_path, ["org"]) == tmp_path / "projects" / "svc"
    assert resolve_local_path("gitlab.com:org/svc.git", "team-a", tmp_path) == tmp_path / "projects" / "org" / "svc"


def test_resolve_local_path_falls_back_to_group(tmp_path: Path) -> None:
    path = resolve_local_path("svc.git", "Team A/Back End", tmp_path)

    assert path == tmp_path / "projects" / "team-a" / "back-end" / "svc"


def test_resolve_local_path_fails_without_group(tmp_path: Path) -> None:
    with pytest.raises(PathResolutionError):
        resolve_local_path("svc", "Standalone", tmp_path)
    with pytest.raises(PathResolutionError):
        resolve_local_path("svc", "", tmp_path)


def test_resolve_local_path_rejects_traversal(tmp_path: Path) -> None:
    with pytest.raises(PathResolutionError):
        resolve_local_path("host:../../etc/passwd", "team", tmp_path)


def test_resolve_projects_skips_unresolvable(tmp_path: Path) -> None:
    settings = SyncSettings(strip_prefixes=("org",))
    records = [
        ProjectRecord(name="svc", source_url="gitlab.com:org/svc.git", group="team-a"),
        ProjectRecord(name="bare", source_url="bare", group="Standalone"),
    ]

    resolved = resolve_projects(records, settings, tmp_path)

    assert [project.name for project in resolved] == ["svc"]
    assert resolved[0].clone_url == "git@gitlab.com:org/svc.git"
    assert resolved[0].local_path == tmp_path / "projects" / "svc"
    assert resolved[0].key == ("svc", "gitlab.com:org/svc.git")
    assert resolve_project(records[0], settings, tmp_path) == resolved[0]
