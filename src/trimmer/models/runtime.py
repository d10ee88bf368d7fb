"""
Runtime data models.

This module contains the structures that flow through a distribution run:
build artifacts, process execution arguments and outcomes, and run states.
"""

import os
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from ..validation import OperationCancelledError, ProcessFailure

# Callback receiving a single line of process output
LineCallback = Callable[[str], None]


class BuildTarget(Enum):
    """Target platforms a build artifact can be made for."""

    StandaloneOSX = "StandaloneOSX"
    StandaloneWindows = "StandaloneWindows"
    StandaloneWindows64 = "StandaloneWindows64"
    StandaloneLinux = "StandaloneLinux"
    StandaloneLinux64 = "StandaloneLinux64"
    StandaloneLinuxUniversal = "StandaloneLinuxUniversal"
    iOS = "iOS"
    Android = "Android"
    WebGL = "WebGL"

    @classmethod
    def parse(cls, name: Union[str, "BuildTarget"]) -> "BuildTarget":
        """Look up a target by name, ignoring case."""
        if isinstance(name, cls):
            return name
        lowered = str(name).strip().lower()
        for member in cls:
            if member.value.lower() == lowered:
                return member
        raise ValueError(f"Unknown build target: {name}")


@dataclass(frozen=True)
class BuildPath:
    """
    One finished build artifact: the unit of work of every distro step.
    """

    # Platform the artifact was built for.
    target: BuildTarget
    # File or directory produced by the build.
    path: Path
    # Name of the build profile that produced the artifact, if known.
    profile: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "target", BuildTarget.parse(self.target))
        object.__setattr__(self, "path", Path(self.path))

    def exists(self) -> bool:
        return self.path.exists()

    @property
    def base_path(self) -> Path:
        """
        Directory containing the build.

        Builds can point to an executable whose sibling files belong to the
        build as well, in which case the containing directory is returned.
        """
        if self.path.is_file():
            return self.path.parent
        return self.path

    def with_path(self, path: Union[str, Path]) -> "BuildPath":
        return replace(self, path=Path(path))


class ExitOutcome(Enum):
    """Interpretation of a finished process."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class ExecutionArgs:
    """
    Everything needed to run one external process.

    The arguments are a single string following the host shell's quoting
    conventions; the caller is responsible for quoting.
    """

    executable: str
    arguments: str = ""
    # Text written to stdin, after which stdin is closed.
    input: Optional[str] = None
    working_dir: Optional[Union[str, Path]] = None
    # Overrides merged into the inherited environment.
    env: Optional[Dict[str, str]] = None
    on_output: Optional[LineCallback] = None
    on_error: Optional[LineCallback] = None
    # Don't log an error for a failing exit code (expected failures, e.g. probes).
    silent_error: bool = False

    @property
    def short_name(self) -> str:
        return os.path.basename(str(self.executable))


@dataclass
class ExecutionResult:
    """Outcome of a finished process execution."""

    executable: str
    exit_code: int
    outcome: ExitOutcome
    stdout: str = ""
    stderr: str = ""
    # Whether cancellation was requested while the process was running.
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return self.outcome is ExitOutcome.SUCCEEDED

    @property
    def short_name(self) -> str:
        return os.path.basename(str(self.executable))

    def check(self, source: Optional[str] = None) -> "ExecutionResult":
        """
        Raise for anything but a successful exit.

        Raises:
            OperationCancelledError: If the execution was cancelled
            ProcessFailure: If the process failed
        """
        if self.outcome is ExitOutcome.CANCELLED:
            raise OperationCancelledError(
                f"{self.short_name} was cancelled (exit code {self.exit_code})",
                source=source,
            )
        if self.outcome is ExitOutcome.FAILED:
            raise ProcessFailure(
                f"{self.short_name} failed with exit code {self.exit_code}",
                exit_code=self.exit_code,
                stdout=self.stdout,
                stderr=self.stderr,
                source=source,
            )
        return self


class DistroState(Enum):
    """State machine of one distribution run."""
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_final(self) -> bool:
        return self in (DistroState.SUCCEEDED, DistroState.FAILED, DistroState.CANCELLED)


@dataclass
class RunRecord:
    """Summary of a finished distribution run."""

    distro: str
    state: DistroState
    started_at: float
    finished_at: float
    error: Optional[str] = None
    artifacts: list = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        return self.finished_at - self.started_at
