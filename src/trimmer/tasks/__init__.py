"""
Progress reporting and cancellation of long-running operations.
"""

from .cancellation import CancellationSource, CancellationToken
from .polling import poll_until
from .progress import (
    ProgressEntry,
    ProgressRegistry,
    ProgressUpdate,
    TaskToken,
    get_progress_registry,
)

__all__ = [
    "CancellationSource",
    "CancellationToken",
    "ProgressEntry",
    "ProgressRegistry",
    "ProgressUpdate",
    "TaskToken",
    "get_progress_registry",
    "poll_until",
]
