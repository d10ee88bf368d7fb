"""
Configuration data models.

This module contains the configuration structures for the process runner,
the configured distros and the application as a whole, loaded from
`trimmer.toml`.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional

from .runtime import BuildPath


class TimeoutConstants:
    """
    Centralized timeout defaults (seconds).
    """
    # Process termination phases
    TERMINATION_GRACEFUL_TIMEOUT = 3.0
    TERMINATION_INTERRUPT_TIMEOUT = 2.0
    TERMINATION_FORCE_TIMEOUT = 2.0

    # Output pumps still draining after the process exited
    OUTPUT_DRAIN_TIMEOUT = 5.0

    # Remote status polling
    STATUS_CHECK_INTERVAL = 30.0


@dataclass
class RunnerConfig:
    """
    Global settings of the process runner and the orchestration layer,
    loaded from the `[runner]` table.
    """

    # Exit codes treated as "cancelled" instead of "failed".
    cancellation_exit_codes: FrozenSet[int]
    # Root directory of the Unity project, used for {project} variables.
    project_dir: Path = field(default_factory=Path.cwd)
    # Directory in which run workspaces are created, None for the system temp dir.
    temp_root: Optional[Path] = None
    log_level: str = "INFO"
    # Process termination phases (seconds to wait after each signal).
    termination_graceful_timeout: float = TimeoutConstants.TERMINATION_GRACEFUL_TIMEOUT
    termination_interrupt_timeout: float = TimeoutConstants.TERMINATION_INTERRUPT_TIMEOUT
    termination_force_timeout: float = TimeoutConstants.TERMINATION_FORCE_TIMEOUT
    # Default interval between remote status checks.
    status_check_interval: float = TimeoutConstants.STATUS_CHECK_INTERVAL


@dataclass
class CredentialsConfig:
    """Settings of the environment credential store, from `[credentials]`."""

    env_prefix: str = "TRIMMER_"


@dataclass
class DistroConfig:
    """
    Configuration of a single distro, loaded from a `[distros.<name>]` table.
    """

    # Unique name of the distro, also used in log messages.
    name: str
    # Plugin kind, e.g. "zip" or "steam".
    kind: str
    # Plugin specific keyword arguments.
    settings: Dict[str, Any] = field(default_factory=dict)
    # Build artifacts configured for this distro.
    builds: List[BuildPath] = field(default_factory=list)


@dataclass
class AppConfig:
    """
    The root configuration object that aggregates all loaded settings.
    """

    runner: RunnerConfig
    credentials: CredentialsConfig
    # Configured distros by name, in file order.
    distros: Dict[str, DistroConfig] = field(default_factory=dict)
