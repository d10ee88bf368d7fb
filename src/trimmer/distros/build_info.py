"""
Reading the `build.json` build info file stored next to a build.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

BUILD_INFO_NAME = "build.json"


@dataclass(frozen=True)
class BuildVersion:
    major: int = 0
    minor: int = 0
    patch: int = 0
    build: int = 0

    @property
    def is_defined(self) -> bool:
        return (self.major >= 0 and self.minor >= 0 and self.patch >= 0
                and (self.major > 0 or self.minor > 0 or self.patch > 0))

    @property
    def major_minor_patch(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    @property
    def major_minor_patch_build(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}+{self.build}"


def build_info_path(path: Union[str, Path]) -> Path:
    """Location of the build info of the build at the given path."""
    path = Path(path)
    base_path = path.parent if path.is_file() else path
    return base_path / BUILD_INFO_NAME


def read_build_version(path: Union[str, Path]) -> Optional[BuildVersion]:
    """
    Read the version from the build info of a build.

    Returns:
        The version, None if the build has no build info. A build info
        without a version returns an undefined (all zero) version.
    """
    info_path = build_info_path(path)
    if not info_path.is_file():
        return None

    try:
        data = json.loads(info_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read build info {info_path}: {e}")
        return None

    version = data.get("version") if isinstance(data, dict) else None
    if not isinstance(version, dict):
        return BuildVersion()

    try:
        return BuildVersion(
            major=int(version.get("major", 0)),
            minor=int(version.get("minor", 0)),
            patch=int(version.get("patch", 0)),
            build=int(version.get("build", 0)),
        )
    except (TypeError, ValueError):
        logger.warning(f"Invalid version in build info {info_path}")
        return BuildVersion()
