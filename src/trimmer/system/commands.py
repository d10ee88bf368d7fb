"""
Command line preparation and executable discovery.

This module provides the helpers used before a process is spawned: quoting
values for the host shell conventions, splitting argument strings and
resolving executables on the search path.
"""

import logging
import os
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union

from ..validation import LaunchFailure
from .platforms import get_host_platform

logger = logging.getLogger(__name__)


def quote(value: Union[str, Path], posix: Optional[bool] = None) -> str:
    """Quote a single value for use inside an argument string."""
    if posix is None:
        posix = get_host_platform().posix_arguments
    if posix:
        return shlex.quote(str(value))
    return subprocess.list2cmdline([str(value)])


def join_arguments(*parts: Optional[str]) -> str:
    """Join already quoted argument fragments, skipping empty ones."""
    return " ".join(part.strip() for part in parts if part and part.strip())


def split_arguments(arguments: str, posix: Optional[bool] = None) -> List[str]:
    """
    Split a single argument string into an argument vector.

    Args:
        arguments: The argument string, quoted by the caller
        posix: Use POSIX rules, defaults to the host platform's convention

    Returns:
        List of arguments

    Raises:
        ValueError: If the string contains unbalanced quotes
    """
    if not arguments or not arguments.strip():
        return []
    if posix is None:
        posix = get_host_platform().posix_arguments
    return shlex.split(arguments, posix=posix)


def resolve_executable(
    executable: Union[str, Path],
    env: Optional[Dict[str, str]] = None,
    source: Optional[str] = None,
) -> str:
    """
    Resolve an executable to an absolute path.

    Values containing a path separator are taken as paths and must exist,
    bare names are looked up on the PATH of the effective environment.

    Args:
        executable: Path or name of the executable
        env: Environment overrides that apply to the process
        source: Name of the component requesting the executable

    Returns:
        Absolute path to the executable

    Raises:
        LaunchFailure: If the executable cannot be found
    """
    name = str(executable)
    if not name:
        raise LaunchFailure("No executable given", executable=name, source=source)

    if os.path.dirname(name):
        path = os.path.abspath(os.path.expanduser(name))
        if not os.path.isfile(path):
            raise LaunchFailure(f"Executable not found: {path}", executable=name, source=source)
        if not os.access(path, os.X_OK):
            raise LaunchFailure(f"Executable is not executable: {path}", executable=name, source=source)
        return path

    search_path = None
    if env and "PATH" in env:
        search_path = env["PATH"]
    found = shutil.which(name, path=search_path)
    if found is None:
        raise LaunchFailure(f"Command not found: {name}", executable=name, source=source)
    return os.path.abspath(found)


def find_first_executable(
    names: Sequence[str],
    directories: Iterable[Union[str, Path]] = (),
) -> Optional[str]:
    """
    Search for the first existing executable out of several candidate names.

    Each directory is searched for all names before falling back to PATH.

    Returns:
        Path to the executable or None if none was found
    """
    for directory in directories:
        for name in names:
            candidate = Path(directory) / name
            if candidate.is_file() and os.access(candidate, os.X_OK):
                return str(candidate)
    for name in names:
        found = shutil.which(name)
        if found:
            return found
    return None
