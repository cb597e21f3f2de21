"""Atomic JSON persistence for the tracker document."""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from .models import Tracker

logger = logging.getLogger(__name__)

TRACKER_FILENAME = ".syncx-tracker.json"


class TrackerIOError(RuntimeError):
    """Raised when the tracker file cannot be read or written."""


class TrackerStore:
    """Load and save the tracker kept inside an output directory.

    Saving writes a temporary file next to the tracker and renames it over the
    old one, so readers never observe a partial document. Two runs against the
    same directory are not coordinated; the last writer wins.
    """

    def __init__(self, output_dir: Path, *, clock: Callable[[], datetime] | None = None) -> None:
        self._output_dir = Path(output_dir)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def path(self) -> Path:
        return self._output_dir / TRACKER_FILENAME

    def now(self) -> datetime:
        return self._clock()

    def new_tracker(self, inventory_file: Path | str) -> Tracker:
        return Tracker(
            last_sync=self._clock(),
            output_directory=str(self._output_dir),
            inventory_file=str(inventory_file),
        )

    def load(self) -> Tracker:
        """Read the tracker, raising ``TrackerIOError`` if it is unreadable."""

        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise TrackerIOError(f"Failed to read tracker {self.path}: {exc}") from exc
        try:
            return Tracker.model_validate_json(raw)
        except ValidationError as exc:
            raise TrackerIOError(f"Failed to parse tracker {self.path}: {exc}") from exc

    def load_or_create(self, inventory_file: Path | str) -> Tracker:
        """Return the stored tracker, or a fresh one when none is usable."""

        if not self.path.exists():
            return self.new_tracker(inventory_file)
        try:
            tracker = self.load()
        except TrackerIOError as exc:
            logger.warning(
                "Ignoring unusable tracker; every project will be treated as new",
                extra={"path": str(self.path), "error": str(exc)},
            )
            return self.new_tracker(inventory_file)
        tracker.output_directory = str(self._output_dir)
        tracker.inventory_file = str(inventory_file)
        return tracker

    def save(self, tracker: Tracker) -> Path:
        """Stamp ``last_sync`` and atomically replace the tracker file."""

        tracker.last_sync = self._clock()
        payload = tracker.model_dump_json(indent=2)
        tmp_name: str | None = None
        try:
            self._output_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f"{TRACKER_FILENAME}.", suffix=".tmp", dir=self._output_dir
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise TrackerIOError(f"Failed to write tracker {self.path}: {exc}") from exc
        return self.path


__all__ = ["TRACKER_FILENAME", "TrackerIOError", "TrackerStore"]
