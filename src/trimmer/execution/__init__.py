"""
External process execution.
"""

from .process_runner import STREAM_LIMIT, ProcessRunner, execute, normalize_exit_code
from .process_tree import ProcessTreeTerminator

__all__ = [
    "ProcessRunner",
    "ProcessTreeTerminator",
    "STREAM_LIMIT",
    "execute",
    "normalize_exit_code",
]
