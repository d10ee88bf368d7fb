"""
Validation functions for settings and plugin configuration.

Every validator returns the normalized value or raises ValidationError
naming the offending field. Plugins pass their name as `source` so that the
error reads like any other plugin error.
"""

import re
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Union

from .exceptions import ValidationError

DISTRO_NAME_PATTERN = re.compile(r'^[a-zA-Z0-9_.-]+$')


def _check_number(value: Any, convert: Callable[[Any], Any], kind: str,
                  min_value, max_value, field_name: str):
    # bool is an int subclass, but `compression = true` is a typo, not a level
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a valid {kind}, got {value}",
                              field_name=field_name, value=value)
    try:
        number = convert(value)
    except (ValueError, TypeError):
        raise ValidationError(f"{field_name} must be a valid {kind}, got {value}",
                              field_name=field_name, value=value)

    if number < min_value:
        raise ValidationError(f"{field_name} must be >= {min_value}, got {number}",
                              field_name=field_name, value=value)
    if max_value is not None and number > max_value:
        raise ValidationError(f"{field_name} must be <= {max_value}, got {number}",
                              field_name=field_name, value=value)
    return number


def validate_positive_integer(
    value: Any,
    min_value: int = 1,
    max_value: Optional[int] = None,
    field_name: str = "value"
) -> int:
    """
    Validate that a value is an integer within bounds.

    Args:
        value: Value to validate, numeric strings are accepted
        min_value: Minimum allowed value (inclusive)
        max_value: Maximum allowed value (inclusive), None for no limit
        field_name: Name of the field being validated

    Returns:
        Validated integer value

    Raises:
        ValidationError: If validation fails
    """
    return _check_number(value, int, "integer", min_value, max_value, field_name)


def validate_positive_float(
    value: Any,
    min_value: float = 0.0,
    max_value: Optional[float] = None,
    field_name: str = "value"
) -> float:
    """Validate that a value is a number within bounds, see validate_positive_integer."""
    return _check_number(value, float, "number", min_value, max_value, field_name)


def validate_non_empty_string(value: Any, field_name: str = "value") -> str:
    """Validate that a value is a string with non-whitespace content."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} must be a non-empty string", field_name=field_name, value=value)
    return value


def validate_path_exists(
    path: Union[str, Path, None],
    field_name: str = "path",
    kind: Optional[str] = None,
    source: Optional[str] = None,
) -> str:
    """
    Validate that a path is set and exists.

    Args:
        path: Path to validate
        field_name: Human readable name of the setting, starts the message
        kind: "file" or "directory" to also check the type of the path
        source: Plugin the setting belongs to

    Returns:
        Validated path string

    Raises:
        ValidationError: If the path is not set, missing or of the wrong kind
    """
    if path is None or str(path) == "":
        raise ValidationError(f"{field_name} not set", field_name=field_name, value=path, source=source)

    checked = Path(path)
    if not checked.exists():
        raise ValidationError(f"{field_name} not found: {checked}",
                              field_name=field_name, value=str(path), source=source)
    if kind == "file" and not checked.is_file():
        raise ValidationError(f"{field_name} is not a file: {checked}",
                              field_name=field_name, value=str(path), source=source)
    if kind == "directory" and not checked.is_dir():
        raise ValidationError(f"{field_name} is not a directory: {checked}",
                              field_name=field_name, value=str(path), source=source)
    return str(path)


def validate_file_exists(path: Union[str, Path, None], field_name: str = "file",
                         source: Optional[str] = None) -> str:
    return validate_path_exists(path, field_name, kind="file", source=source)


def validate_directory_exists(path: Union[str, Path, None], field_name: str = "directory",
                              source: Optional[str] = None) -> str:
    return validate_path_exists(path, field_name, kind="directory", source=source)


def validate_distro_name(
    name: str,
    existing_names: Optional[List[str]] = None,
    field_name: str = "distro_name"
) -> str:
    """
    Validate a distro name as used in `[distros.<name>]` and on the command line.

    Raises:
        ValidationError: If the name is empty, contains characters other than
            letters, digits, dots, underscores and hyphens, or is taken
    """
    if not name or not isinstance(name, str):
        raise ValidationError(f"{field_name} must be a non-empty string", field_name=field_name, value=name)

    if not DISTRO_NAME_PATTERN.match(name):
        raise ValidationError(
            f"{field_name} must contain only alphanumeric characters, dots, underscores, and hyphens: {name}",
            field_name=field_name,
            value=name
        )

    if existing_names and name in existing_names:
        raise ValidationError(f"{field_name} must be unique, '{name}' already exists",
                              field_name=field_name, value=name)
    return name


def validate_exit_codes(codes: Any, field_name: str = "exit_codes") -> List[int]:
    """Validate a list of process exit codes."""
    if isinstance(codes, (str, bytes)) or not isinstance(codes, Iterable):
        raise ValidationError(f"{field_name} must be a list of integers", field_name=field_name, value=codes)
    return [
        validate_positive_integer(code, min_value=-(2 ** 31), field_name=f"{field_name} item {i}")
        for i, code in enumerate(codes)
    ]


def validate_enum_choice(
    value: Any,
    choices: List[str],
    field_name: str = "value",
    case_sensitive: bool = True
) -> str:
    """
    Validate that a value is one of the allowed choices.

    Returns:
        The matching choice, in the spelling of the choice list

    Raises:
        ValidationError: If value is not in choices
    """
    wanted = str(value) if case_sensitive else str(value).lower()
    for choice in choices:
        if (choice if case_sensitive else choice.lower()) == wanted:
            return choice
    raise ValidationError(f"{field_name} must be one of {choices}, got {value}", field_name=field_name, value=value)
