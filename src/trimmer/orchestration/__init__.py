"""
Orchestration of distribution runs.

This module provides the distro base class with its run state machine,
signal handling and the shared runtime state of a run.
"""

from .distro_base import DistroBase
from .shared_state import RunState, TimeoutConstants
from .signal_handler import SignalHandler

__all__ = [
    "DistroBase",
    "RunState",
    "SignalHandler",
    "TimeoutConstants",
]
