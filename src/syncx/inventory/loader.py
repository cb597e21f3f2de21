"""Inventory loading utilities."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from pathlib import Path

import yaml
from pydantic import ValidationError

from ..config import ConfigurationError
from .models import Inventory

YAML_SUFFIXES = {".yml", ".yaml"}


class InventoryLoadError(ConfigurationError):
    """Raised when the inventory file cannot be read or parsed."""


@dataclass(slots=True)
class LoadedInventory:
    """A parsed inventory together with the fingerprint of its raw bytes."""

    path: Path
    inventory: Inventory
    fingerprint: str


def inventory_fingerprint(raw: bytes) -> str:
    """Return the stable content hash recorded in the tracker."""

    return hashlib.md5(raw).hexdigest()


class InventoryLoader:
    """Loads inventory documents from JSON or YAML files on disk."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> LoadedInventory:
        """Read, parse and validate the inventory file."""

        try:
            raw = self._path.read_bytes()
        except OSError as exc:
            raise InventoryLoadError(f"Failed to read inventory {self._path}: {exc}") from exc

        try:
            if self._path.suffix.lower() in YAML_SUFFIXES:
                document = yaml.safe_load(raw.decode("utf-8"))
            else:
                document = json.loads(raw.decode("utf-8"))
        except (yaml.YAMLError, json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise InventoryLoadError(f"Invalid inventory document in {self._path}: {exc}") from exc

        if document is None:
            document = {}
        if not isinstance(document, dict):
            raise InventoryLoadError(f"Inventory {self._path} must contain a mapping at the top level")

        try:
            inventory = Inventory.model_validate(document)
        except ValidationError as exc:
            raise InventoryLoadError(f"Inventory validation error in {self._path}: {exc}") from exc

        return LoadedInventory(
            path=self._path,
            inventory=inventory,
            fingerprint=inventory_fingerprint(raw),
        )


def load_inventory(path: Path) -> LoadedInventory:
    """Convenience wrapper for loading a single inventory file."""

    return InventoryLoader(path).load()


__all__ = [
    "InventoryLoadError",
    "InventoryLoader",
    "LoadedInventory",
    "inventory_fingerprint",
    "load_inventory",
]
