"""
Validation and error handling for the trimmer package.

This module provides the error taxonomy of the distribution engine, input
validation for settings, and consistent error reporting helpers.
"""

from .exceptions import (
    ConfigurationError,
    DistroBusyError,
    ErrorSeverity,
    LaunchFailure,
    OperationCancelledError,
    ParseFailure,
    ProcessError,
    ProcessFailure,
    TrimmerError,
    ValidationError,
    WaitTimeoutError,
    handle_cli_error,
    handle_config_error,
    handle_error,
)

from .validators import (
    validate_directory_exists,
    validate_distro_name,
    validate_enum_choice,
    validate_exit_codes,
    validate_file_exists,
    validate_non_empty_string,
    validate_path_exists,
    validate_positive_float,
    validate_positive_integer,
)

__all__ = [
    # Errors
    "TrimmerError",
    "ConfigurationError",
    "ValidationError",
    "ProcessError",
    "LaunchFailure",
    "ProcessFailure",
    "ParseFailure",
    "WaitTimeoutError",
    "OperationCancelledError",
    "DistroBusyError",
    # Handling
    "ErrorSeverity",
    "handle_error",
    "handle_config_error",
    "handle_cli_error",
    # Validators
    "validate_directory_exists",
    "validate_distro_name",
    "validate_enum_choice",
    "validate_exit_codes",
    "validate_file_exists",
    "validate_non_empty_string",
    "validate_path_exists",
    "validate_positive_float",
    "validate_positive_integer",
]
