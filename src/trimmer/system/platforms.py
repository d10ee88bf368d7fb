"""
Host platform strategy table.

Everything that differs between the operating systems the tools run on is
collected here and resolved once per process: the exit codes that mean a
process was forcefully terminated, the argument splitting rules and the tool
search sequences of the distribution plugins.
"""

import functools
import logging
import platform
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HostPlatform:
    """Platform specific behavior of the process runner and plugins."""

    key: str
    # Exit codes of forced termination (128 + SIGKILL/SIGTERM on POSIX).
    cancellation_exit_codes: FrozenSet[int]
    # Whether argument strings follow POSIX shell quoting.
    posix_arguments: bool
    # Path of steamcmd relative to the Steam SDK root.
    steamcmd_path: Tuple[str, ...]
    # Executable names of 7-Zip, in search order.
    seven_zip_names: Tuple[str, ...]


# Windows reports the exit code passed to TerminateProcess, which is
# indistinguishable from ordinary failures, so no code is reserved there.
PLATFORMS: Dict[str, HostPlatform] = {
    "macos": HostPlatform(
        key="macos",
        cancellation_exit_codes=frozenset({137, 143}),
        posix_arguments=True,
        steamcmd_path=("tools", "ContentBuilder", "builder_osx", "steamcmd.sh"),
        seven_zip_names=("7z", "7za", "7zr"),
    ),
    "linux": HostPlatform(
        key="linux",
        cancellation_exit_codes=frozenset({137, 143}),
        posix_arguments=True,
        steamcmd_path=("tools", "ContentBuilder", "builder_linux", "steamcmd.sh"),
        seven_zip_names=("7z", "7za", "7zr"),
    ),
    "windows": HostPlatform(
        key="windows",
        cancellation_exit_codes=frozenset(),
        posix_arguments=False,
        steamcmd_path=("tools", "ContentBuilder", "builder", "steamcmd.exe"),
        seven_zip_names=("7z.exe", "7za.exe", "7zr.exe"),
    ),
}


def platform_key(system: Optional[str] = None) -> str:
    """
    Map a `platform.system()` value to a key of the strategy table.

    Unknown POSIX systems use the Linux strategy.
    """
    system = (system or platform.system()).lower()
    if system == "darwin":
        return "macos"
    if system.startswith("win") or system.startswith("cygwin"):
        return "windows"
    return "linux"


@functools.lru_cache(maxsize=None)
def get_host_platform() -> HostPlatform:
    """Resolve the strategy of the running host (cached)."""
    host = PLATFORMS[platform_key()]
    logger.debug(f"Resolved host platform strategy: {host.key}")
    return host
