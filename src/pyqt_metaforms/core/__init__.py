"""
Core utilities.

Toolkit-agnostic state primitives plus the QThread helper used to keep
collaborator calls off the GUI thread.
"""

from .slug import SLUG_MAX_LENGTH, slugify
from .value_store import ChangeSource, FormValueStore, ValueChange
from .background_task import BackgroundTask, BackgroundTaskManager

__all__ = [
    "SLUG_MAX_LENGTH",
    "slugify",
    "ChangeSource",
    "FormValueStore",
    "ValueChange",
    "BackgroundTask",
    "BackgroundTaskManager",
]
