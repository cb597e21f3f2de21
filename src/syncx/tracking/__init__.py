"""Tracker models and persistence exports."""

from .models import TrackedProject, TrackedStatus, Tracker
from .store import TRACKER_FILENAME, TrackerIOError, TrackerStore

__all__ = [
    "TRACKER_FILENAME",
    "TrackedProject",
    "TrackedStatus",
    "Tracker",
    "TrackerIOError",
    "TrackerStore",
]
