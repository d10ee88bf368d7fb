"""
Cooperative scheduling of generator routines.
"""

from .routines import Routine, RoutineHandle, RoutineScheduler

__all__ = [
    "Routine",
    "RoutineHandle",
    "RoutineScheduler",
]
