"""Clone URL and local path derivation for inventory projects."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

from .config import SUPPORTED_PROTOCOLS, ConfigurationError, SyncSettings
from .inventory.models import STANDALONE_GROUP, ProjectRecord

logger = logging.getLogger(__name__)

PROJECTS_SUBDIR = "projects"

_SCHEME_URL = re.compile(
    r"^(?P<scheme>[A-Za-z][A-Za-z0-9+.-]*)://(?:[^@/]+@)?(?P<host>[^/:]+)(?::\d+)?(?P<path>/.*)?$"
)
_SCP_URL = re.compile(r"^(?:(?P<user>[^@/:]+)@)?(?P<host>[^/:]+):(?P<path>.*)$")


class PathResolutionError(ValueError):
    """Raised when no local path can be derived for a project."""


@dataclass(frozen=True, slots=True)
class ResolvedProject:
    """An inventory project with its clone URL and local checkout path."""

    name: str
    source_url: str
    group: str
    clone_url: str
    local_path: Path

    @property
    def key(self) -> tuple[str, str]:
        return (self.name, self.source_url)


def _strip_git_suffix(value: str) -> str:
    return value[:-4] if value.endswith(".git") else value


def resolve_clone_url(source_url: str, protocol: str) -> str:
    """Apply ``protocol`` to an inventory URL.

    >>> resolve_clone_url("gitlab.com:org/svc.git", "ssh")
    'git@gitlab.com:org/svc.git'
    >>> resolve_clone_url("git@gitlab.com:org/svc.git", "http")
    'https://gitlab.com/org/svc.git'
    """

    url = source_url.strip()
    if protocol == "ssh":
        scheme = _SCHEME_URL.match(url)
        if scheme is not None:
            if scheme.group("scheme") == "ssh":
                return url
            path = (scheme.group("path") or "").lstrip("/")
            return f"git@{scheme.group('host')}:{path}"
        scp = _SCP_URL.match(url)
        if scp is not None and scp.group("user"):
            return url
        return f"git@{url}"

    if protocol == "http":
        if url.startswith(("https://", "http://")):
            return url
        scp = _SCP_URL.match(url)
        if scp is not None and "://" not in url:
            return f"https://{scp.group('host')}/{scp.group('path').lstrip('/')}"
        return f"https://{url}"

    raise ConfigurationError(
        f"Unsupported protocol {protocol!r}; expected one of {', '.join(SUPPORTED_PROTOCOLS)}"
    )


def extract_repository_path(source_url: str) -> str:
    """Return the path after the host with any ``.git`` suffix removed, or ``""``."""

    url = source_url.strip()
    match = _SCHEME_URL.match(url)
    if match is None:
        match = _SCP_URL.match(url)
    if match is None:
        # bare ``host/path`` form
        if "/" not in url:
            return ""
        path = url.split("/", 1)[1].strip("/")
        return _strip_git_suffix(path).strip("/")
    path = (match.group("path") or "").strip("/")
    return _strip_git_suffix(path).strip("/")


def strip_organisation_prefixes(path: str, prefixes: Iterable[str]) -> str:
    """Drop leading components that name an organisation.

    Matching is case-insensitive. When every component would be dropped the
    path is returned unchanged.
    """

    skip = {prefix.strip().lower() for prefix in prefixes if prefix.strip()}
    parts = path.split("/")
    for index, part in enumerate(parts):
        if part.strip().lower() not in skip:
            return "/".join(parts[index:])
    return path


def _checked_join(base: Path, relative: str) -> Path:
    parts = [part for part in relative.split("/") if part]
    if not parts or any(part in (".", "..") for part in parts):
        raise PathResolutionError(f"Unsafe repository path {relative!r}")
    return base.joinpath(*parts)


def resolve_local_path(
    source_url: str,
    group: str,
    base_dir: Path,
    strip_prefixes: Sequence[str] = (),
) -> Path:
    """Derive where a project is checked out under ``base_dir/projects``."""

    root = Path(base_dir) / PROJECTS_SUBDIR
    repository_path = extract_repository_path(source_url)
    if repository_path:
        return _checked_join(root, strip_organisation_prefixes(repository_path, strip_prefixes))

    if group and group != STANDALONE_GROUP:
        group_path = group.lower().replace(" ", "-")
        leaf = _strip_git_suffix(source_url.strip().rstrip("/").split("/")[-1])
        if leaf:
            return _checked_join(root, f"{group_path}/{leaf}")

    raise PathResolutionError(f"Cannot derive a local path from {source_url!r} (group {group!r})")


def resolve_project(record: ProjectRecord, settings: SyncSettings, base_dir: Path) -> ResolvedProject:
    return ResolvedProject(
        name=record.name,
        source_url=record.source_url,
        group=record.group,
        clone_url=resolve_clone_url(record.source_url, settings.protocol),
        local_path=resolve_local_path(record.source_url, record.group, base_dir, settings.strip_prefixes),
    )


def resolve_projects(
    records: Iterable[ProjectRecord], settings: SyncSettings, base_dir: Path
) -> list[ResolvedProject]:
    """Resolve every record, skipping those without a derivable path."""

    resolved: list[ResolvedProject] = []
    for record in records:
        try:
            resolved.append(resolve_project(record, settings, base_dir))
        except PathResolutionError as exc:
            logger.warning(
                "Skipping project without a usable local path",
                extra={"project": record.name, "url": record.source_url, "error": str(exc)},
            )
    return resolved


__all__ = [
    "PROJECTS_SUBDIR",
    "PathResolutionError",
    "ResolvedProject",
    "extract_repository_path",
    "resolve_clone_url",
    "resolve_local_path",
    "resolve_project",
    "resolve_projects",
    "strip_organisation_prefixes",
]
