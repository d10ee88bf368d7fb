"""
Distro that archives builds with 7-Zip.
"""

import fnmatch
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..models import BuildPath, BuildTarget, ExecutionArgs
from ..orchestration import DistroBase
from ..system import find_first_executable, get_host_platform, quote
from ..tasks import TaskToken
from ..validation import ConfigurationError, ValidationError, validate_enum_choice, validate_positive_integer
from .build_info import BUILD_INFO_NAME, read_build_version
from .notarization import NotarizationDistro

logger = logging.getLogger(__name__)


class CompressionFormat(Enum):
    SevenZip = "7z"
    TBZ = "tbz"
    TGZ = "tgz"
    Tar = "tar"
    Wim = "wim"
    TXZ = "txz"
    Zip = "zip"
    # Uncompressed, only supported for builds consisting of a single file
    RawFile = "rawfile"

    @property
    def extension(self) -> str:
        if self is CompressionFormat.RawFile:
            return ""
        return "." + self.value


# 7-Zip compression levels: copy, fastest, fast, normal, maximum, ultra
COMPRESSION_LEVELS = (0, 1, 3, 5, 7, 9)

ZIP_IGNORE = (
    ".DS_Store",
    "Thumbs.db",
    "desktop.ini",
    "*_BackUpThisFolder_ButDontShipItWithYourGame",
    "*_BurstDebugInformation_DoNotShip",
    BUILD_INFO_NAME,
)


def is_ignored(name: str) -> bool:
    return any(fnmatch.fnmatchcase(name, pattern) for pattern in ZIP_IGNORE)


class ZipDistro(DistroBase):
    """
    Create an archive of each build.

    The archive is placed next to the build's directory. Builds consisting
    of a single file are archived without their directory.

    Args:
        format: Archive format, one of `CompressionFormat`
        compression: 7-Zip compression level (0, 1, 3, 5, 7 or 9)
        pretty_names: Names by build target, used for the archive file and
            its root folder
        append_version: Append the version to the pretty name, read from the
            build's `build.json` or the `version` setting
        version: Version used when the build has none
        seven_zip_path: Path to 7-Zip, searched on the PATH by default
        notarization: Notarization distro used to notarize mac builds before
            they are archived
    """

    kind = "zip"

    def __init__(
        self,
        name: str,
        format: str = "zip",
        compression: int = 5,
        pretty_names: Optional[Dict[str, str]] = None,
        append_version: bool = False,
        version: Optional[str] = None,
        seven_zip_path: Optional[str] = None,
        notarization: Optional[NotarizationDistro] = None,
        **kwargs,
    ):
        super().__init__(name, **kwargs)
        self.format = format
        self.compression = compression
        self.pretty_names = dict(pretty_names or {})
        self.append_version = append_version
        self.version = version
        self.seven_zip_path = seven_zip_path
        self.notarization = notarization
        self._seven_zip: Optional[str] = None

    @property
    def compression_format(self) -> CompressionFormat:
        return CompressionFormat(self.format)

    async def validate(self, build_paths: List[BuildPath]) -> None:
        await super().validate(build_paths)

        try:
            self.format = validate_enum_choice(
                self.format, [f.value for f in CompressionFormat], "format", case_sensitive=False
            )
            validate_positive_integer(self.compression, min_value=0, max_value=9, field_name="compression")
        except ValidationError as e:
            raise ConfigurationError(e.message, source=self.name) from e
        if self.compression not in COMPRESSION_LEVELS:
            raise ConfigurationError(
                f"compression must be one of {list(COMPRESSION_LEVELS)}, got {self.compression}",
                source=self.name,
            )

        for target in self.pretty_names:
            try:
                BuildTarget.parse(target)
            except ValueError:
                raise ConfigurationError(f"Invalid build target in pretty names: {target}", source=self.name)

        if self.compression_format is CompressionFormat.RawFile:
            for build_path in build_paths:
                if not build_path.path.is_file():
                    raise ConfigurationError(
                        f"Format rawfile only supports builds with a single output file: {build_path.path}",
                        source=self.name,
                    )
        else:
            self._seven_zip = self._find_seven_zip()

        if self.notarization is not None and any(self.notarization.supports(b) for b in build_paths):
            self.notarization.validate_settings()

    async def preprocess(self, build_path: BuildPath, task: TaskToken) -> BuildPath:
        if self.notarization is not None:
            return await self.notarization.notarize_if_mac(build_path, task)
        return build_path

    async def process(self, build_path: BuildPath, task: TaskToken) -> Any:
        return await self.zip(build_path, task)

    async def zip(self, build_path: BuildPath, task: TaskToken) -> BuildPath:
        """
        Archive a build.

        Returns:
            Build pointing to the archive
        """
        path = build_path.path
        if not path.exists():
            raise ConfigurationError(f"Path to compress does not exist: {path}", source=self.name)

        if self.compression_format is CompressionFormat.RawFile:
            return self._pass_through(build_path)

        base_path = build_path.base_path
        entries = sorted(e for e in base_path.iterdir() if not is_ignored(e.name))
        if not entries:
            raise ConfigurationError(f"Nothing to archive in directory: {base_path}", source=self.name)

        pretty_name = self.get_pretty_name(build_path, fallback=base_path.stem)
        archive_name = (pretty_name + self.compression_format.extension).replace(" ", "_")
        output_path = (base_path.parent / archive_name).resolve()

        # 7-Zip would update an existing archive
        if output_path.exists():
            output_path.unlink()

        single_file = len(entries) == 1
        input_path = entries[0] if single_file else base_path
        input_name = input_path.name

        excludes = " ".join(quote(f"-xr!{pattern}") for pattern in ZIP_IGNORE)
        arguments = f"a {quote(output_path)} {quote(input_name)} -mx{self.compression} {excludes}"

        task.report(0, description=f"Archiving {input_name}")
        await self.execute(
            ExecutionArgs(self._seven_zip or self._find_seven_zip(), arguments, working_dir=input_path.parent),
            task,
        )

        if not single_file and pretty_name != input_name:
            await self.rename_root(output_path, input_name, pretty_name, task)

        logger.info(f"{self.name}: Created archive {output_path}")
        return BuildPath(build_path.target, output_path, build_path.profile)

    async def rename_root(self, archive_path: Path, old_name: str, new_name: str, task: TaskToken) -> None:
        """Rename the root folder inside an archive."""
        if not archive_path.is_file():
            raise ConfigurationError(f"Path to archive does not exist: {archive_path}", source=self.name)
        arguments = f"rn {quote(archive_path)} {quote(old_name)} {quote(new_name)}"
        await self.execute(ExecutionArgs(self._seven_zip or self._find_seven_zip(), arguments), task)

    def get_pretty_name(self, build_path: BuildPath, fallback: Optional[str] = None) -> Optional[str]:
        pretty_name = fallback
        for target, name in self.pretty_names.items():
            if BuildTarget.parse(target) is build_path.target:
                pretty_name = name
                break

        if self.append_version:
            version = self.get_version(build_path)
            if version:
                pretty_name = f"{pretty_name} {version}" if pretty_name else version

        return pretty_name

    def get_version(self, build_path: BuildPath) -> Optional[str]:
        build_version = read_build_version(build_path.path)
        if build_version is not None:
            if build_version.is_defined:
                return build_version.major_minor_patch
            logger.warning(f"{self.name}: {BUILD_INFO_NAME} exists but contains no version")
        if not self.version:
            logger.warning(f"{self.name}: No version to append for {build_path.target.value}")
        return self.version

    def _pass_through(self, build_path: BuildPath) -> BuildPath:
        path = build_path.path
        if not path.is_file():
            raise ConfigurationError(
                f"Format rawfile only supports builds with a single output file: {path}", source=self.name
            )

        pretty_name = self.get_pretty_name(build_path)
        if not pretty_name:
            return build_path

        new_path = path.with_name(pretty_name + path.suffix)
        if new_path != path:
            path.rename(new_path)
            logger.info(f"{self.name}: Renamed {path.name} to {new_path.name}")
        return build_path.with_path(new_path)

    def _find_seven_zip(self) -> str:
        if self.seven_zip_path:
            return self.require_executable(self.seven_zip_path, "7-Zip path")
        found = find_first_executable(get_host_platform().seven_zip_names)
        if found is None:
            raise ConfigurationError("Could not find 7-Zip on the PATH, set seven_zip_path", source=self.name)
        return found
