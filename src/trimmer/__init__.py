"""
Trimmer: Distribution engine for finished game builds.

This package runs external tools (archivers, uploaders, store SDKs) to ship
build artifacts, with streaming output, cooperative cancellation and
progress reporting.

The package is organized into specialized modules:
- config: Configuration management and validation
- models: Data structures and type definitions
- validation: Error taxonomy, input validation and error handling
- system: Host platform strategies, command lines, templates and credentials
- execution: External process execution and termination
- tasks: Progress reporting, cancellation and polling
- scheduler: Generator based cooperative routine scheduler
- orchestration: Distribution run state machine and signal handling
- distros: Distribution plugins
- cli: Command-line interface

Usage:
    From command line:
        trimmer-distro --config trimmer.toml run nightly-zip

    Programmatically:
        from trimmer import ZipDistro, BuildPath, BuildTarget
        distro = ZipDistro("nightly", format="zip")
        state = await distro.distribute([BuildPath(BuildTarget.StandaloneLinux64, "Builds/Linux")])
"""

# Main interfaces
from .config import clear_config_cache, get_config, set_config_path
from .cli import main_cli
from .distros import (
    ItchDistro,
    MetaDistro,
    NotarizationDistro,
    ScriptDistro,
    SteamDistro,
    UploadDistro,
    ZipDistro,
    create_distro,
    create_distros,
)
from .execution import ProcessRunner
from .orchestration import DistroBase, SignalHandler
from .scheduler import RoutineHandle, RoutineScheduler
from .tasks import CancellationSource, CancellationToken, ProgressRegistry, TaskToken

# Model classes for external use
from .models import (
    AppConfig,
    BuildPath,
    BuildTarget,
    DistroConfig,
    DistroState,
    ExecutionArgs,
    ExecutionResult,
    ExitOutcome,
    RunnerConfig,
)

# Errors
from .validation import (
    ConfigurationError,
    DistroBusyError,
    LaunchFailure,
    OperationCancelledError,
    ParseFailure,
    ProcessFailure,
    TrimmerError,
    ValidationError,
    WaitTimeoutError,
)

__version__ = "1.0.0"

__all__ = [
    # Main interfaces
    "get_config",
    "clear_config_cache",
    "set_config_path",
    "main_cli",
    "create_distro",
    "create_distros",
    "ProcessRunner",
    "DistroBase",
    "SignalHandler",
    "RoutineScheduler",
    "RoutineHandle",
    "CancellationSource",
    "CancellationToken",
    "ProgressRegistry",
    "TaskToken",
    # Distros
    "ItchDistro",
    "MetaDistro",
    "NotarizationDistro",
    "ScriptDistro",
    "SteamDistro",
    "UploadDistro",
    "ZipDistro",
    # Models
    "AppConfig",
    "BuildPath",
    "BuildTarget",
    "DistroConfig",
    "DistroState",
    "ExecutionArgs",
    "ExecutionResult",
    "ExitOutcome",
    "RunnerConfig",
    # Errors
    "TrimmerError",
    "ConfigurationError",
    "ValidationError",
    "LaunchFailure",
    "ProcessFailure",
    "ParseFailure",
    "WaitTimeoutError",
    "OperationCancelledError",
    "DistroBusyError",
]
