"""
Data models for the distribution engine.

Configuration Models:
- Runner settings (termination timeouts, cancellation exit codes)
- Distro definitions and their build artifacts

Runtime Models:
- Build artifacts and targets
- Process execution arguments and results
- Distribution run states and records
"""

from .config import AppConfig, CredentialsConfig, DistroConfig, RunnerConfig, TimeoutConstants
from .runtime import (
    BuildPath,
    BuildTarget,
    DistroState,
    ExecutionArgs,
    ExecutionResult,
    ExitOutcome,
    LineCallback,
    RunRecord,
)

__all__ = [
    # Configuration
    "AppConfig",
    "CredentialsConfig",
    "DistroConfig",
    "RunnerConfig",
    "TimeoutConstants",
    # Runtime
    "BuildPath",
    "BuildTarget",
    "DistroState",
    "ExecutionArgs",
    "ExecutionResult",
    "ExitOutcome",
    "LineCallback",
    "RunRecord",
]
