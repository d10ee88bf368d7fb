"""
Exception hierarchy and error management.

This module provides the error taxonomy shared by the process runner, the task
tokens and the distribution plugins, together with the small logging helper
used wherever an error is reported at a boundary.
"""

import logging
import sys
from enum import Enum
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Severity levels for error handling."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class TrimmerError(Exception):
    """
    Base class of all errors raised by the distribution engine.

    The optional source names the plugin or tool the error originates from
    and is prefixed to the message.
    """

    def __init__(self, message: str, source: Optional[str] = None):
        self.message = message
        self.source = source
        super().__init__(f"{source}: {message}" if source else message)


class ConfigurationError(TrimmerError):
    """A required setting is missing or invalid. Raised before any process is spawned."""


class ValidationError(ConfigurationError):
    """
    Exception raised when validation of a single field fails.

    This is the main exception type used throughout the validation system.
    """

    def __init__(self, message: str, field_name: Optional[str] = None,
                 value: Any = None, severity: ErrorSeverity = ErrorSeverity.ERROR,
                 source: Optional[str] = None):
        super().__init__(message, source=source)
        self.field_name = field_name
        self.value = value
        self.severity = severity


class ProcessError(TrimmerError):
    """Base class for errors of an external process invocation."""


class LaunchFailure(ProcessError):
    """The executable could not be found or started."""

    def __init__(self, message: str, executable: str, source: Optional[str] = None):
        super().__init__(message, source=source)
        self.executable = executable


class ProcessFailure(ProcessError):
    """An external tool exited with a non-success, non-cancellation exit code."""

    def __init__(self, message: str, exit_code: Optional[int] = None,
                 stdout: str = "", stderr: str = "", source: Optional[str] = None):
        super().__init__(message, source=source)
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr


class ParseFailure(ProcessFailure):
    """Expected structured output was not found in a tool's output."""


class WaitTimeoutError(TrimmerError):
    """A polling wait exceeded its maximum duration."""

    def __init__(self, message: str, waited: float, source: Optional[str] = None):
        super().__init__(message, source=source)
        self.waited = waited


class OperationCancelledError(TrimmerError):
    """Cancellation was requested or a process was forcefully terminated."""

    def __init__(self, message: str = "Operation was cancelled", source: Optional[str] = None):
        super().__init__(message, source=source)


class DistroBusyError(TrimmerError):
    """A distribution run was started while another run of the same distro is active."""


_LOG_LEVELS = {
    ErrorSeverity.DEBUG: logging.DEBUG,
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


def handle_error(
    error: Exception,
    context: str,
    severity: Union[ErrorSeverity, str] = ErrorSeverity.ERROR,
    reraise: bool = True,
    logger: Optional[logging.Logger] = None
) -> None:
    """
    Handle errors with consistent logging and optional re-raising.

    Args:
        error: The exception that occurred
        context: Context description of where the error occurred
        severity: Severity level for logging, as enum or its string value
        reraise: Whether to re-raise the exception after logging
        logger: Logger instance to use (defaults to module logger)
    """
    effective_logger = logger or globals()['logger']
    if isinstance(severity, str):
        severity = ErrorSeverity(severity.lower())

    # Tracebacks only where they help: debugging and fatal errors
    effective_logger.log(
        _LOG_LEVELS[severity],
        f"Error in {context}: {error}",
        exc_info=severity in (ErrorSeverity.DEBUG, ErrorSeverity.CRITICAL),
    )

    if reraise:
        raise error


def handle_config_error(error: Exception, context: str, **kwargs) -> None:
    """Handle configuration-related errors."""
    handle_error(error, f"config {context}", **kwargs)


def handle_cli_error(error: Exception, context: str, exit_code: int = 1,
                     severity: Union[ErrorSeverity, str] = ErrorSeverity.ERROR, **kwargs) -> None:
    """Log a CLI error and exit with the given code."""
    handle_error(error, f"CLI {context}", severity=severity, reraise=False, **kwargs)
    sys.exit(exit_code)
