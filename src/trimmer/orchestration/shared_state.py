"""
Shared data structures for the orchestration module.

This module defines the runtime state of a distribution run and re-exports
the timeout constants used across the orchestration components.
"""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..models import TimeoutConstants
from ..tasks import CancellationSource, TaskToken


@dataclass
class RunState:
    """
    Runtime state of one distribution run.

    Exists only while the run is active and is owned exclusively by it.
    """
    # Cancellation of this run, linked to the caller's token.
    cancellation: CancellationSource
    started_at: float = field(default_factory=time.time)
    # Temporary directory of the run, removed when the run ends.
    workspace: Optional[Path] = None
    # Root progress task of the run.
    task: Optional[TaskToken] = None


__all__ = ["RunState", "TimeoutConstants"]
