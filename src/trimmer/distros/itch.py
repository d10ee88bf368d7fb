"""
Distro that pushes builds to itch.io with butler.
"""

import logging
from typing import Any, List, Optional

from ..models import BuildPath, BuildTarget, ExecutionArgs
from ..orchestration import DistroBase
from ..system import join_arguments, quote
from ..tasks import TaskToken
from .build_info import BUILD_INFO_NAME, read_build_version

logger = logging.getLogger(__name__)

CHANNEL_NAMES = {
    BuildTarget.StandaloneOSX: "osx",
    BuildTarget.StandaloneWindows: "win32",
    BuildTarget.StandaloneWindows64: "win64",
    BuildTarget.StandaloneLinux: "linux32",
    BuildTarget.StandaloneLinux64: "linux64",
    BuildTarget.StandaloneLinuxUniversal: "linux",
    BuildTarget.Android: "android",
}


class ItchDistro(DistroBase):
    """
    Push builds to an itch.io project.

    Each build target is pushed to its own channel (e.g. `osx`, `win64`),
    optionally with a suffix (`osx-beta`). Builds of targets without a
    channel are skipped.
    """

    kind = "itch"

    def __init__(
        self,
        name: str,
        butler_path: str = "butler",
        project: str = "",
        channel_suffix: Optional[str] = None,
        version: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(name, **kwargs)
        self.butler_path = butler_path
        self.project = project
        self.channel_suffix = channel_suffix
        self.version = version

    def supports(self, build_path: BuildPath) -> bool:
        return build_path.target in CHANNEL_NAMES

    async def validate(self, build_paths: List[BuildPath]) -> None:
        await super().validate(build_paths)
        self.require_executable(self.butler_path, "Butler path")
        self.require_setting(self.project, "Project")

    def channel(self, target: BuildTarget) -> str:
        channel = CHANNEL_NAMES[target]
        if self.channel_suffix:
            channel += "-" + self.channel_suffix
        return channel

    def get_version(self, build_path: BuildPath) -> Optional[str]:
        build_version = read_build_version(build_path.base_path)
        if build_version is not None:
            if build_version.is_defined:
                return build_version.major_minor_patch_build
            logger.warning(f"{self.name}: {BUILD_INFO_NAME} exists but contains no version")
        return self.version

    async def process(self, build_path: BuildPath, task: TaskToken) -> Any:
        channel = self.channel(build_path.target)
        version = self.get_version(build_path)

        arguments = join_arguments(
            f"push {quote(build_path.base_path)} {quote(f'{self.project}:{channel}')}",
            f"--userversion {quote(version)}" if version else None,
            f"{quote('--ignore=*.DS_Store')} {quote('--ignore=' + BUILD_INFO_NAME)}",
        )

        task.report(0, description=f"Pushing {build_path.target.value} to {self.project}:{channel}")
        await self.execute(ExecutionArgs(self.butler_path, arguments), task)
        return channel

    async def finalize(self, results: List[Any], task: TaskToken) -> None:
        logger.info(f"{self.name}: Builds pushed to itch.io ({', '.join(results)})")
