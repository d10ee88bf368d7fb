"""
Distro that uploads builds to Steam with steamcmd.
"""

import functools
import logging
import re
from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

from ..models import BuildPath, ExecutionArgs
from ..orchestration import DistroBase
from ..system import Login, get_host_platform, quote, substitute_file_variables
from ..tasks import TaskToken
from ..validation import ConfigurationError, validate_directory_exists, validate_file_exists, validate_path_exists

logger = logging.getLogger(__name__)

BUILDING_DEPOT_PATTERN = re.compile(r"Building depot (\d+)")
SUCCESS_BUILD_ID_PATTERN = re.compile(r"Successfully finished appID.*\(BuildID (\d+)\)")


def find_steam_cmd(sdk_path: Union[str, Path], steamcmd_path: Sequence[str]) -> Optional[Path]:
    """
    Find steamcmd in the Steam SDK.

    The SDK path can point to steamcmd itself, to the SDK root or to any
    directory along the way to steamcmd (e.g. `tools/ContentBuilder`).

    Returns:
        Path to steamcmd or None if it could not be found
    """
    current = Path(sdk_path)
    if current.is_file():
        return current

    directories, executable = steamcmd_path[:-1], steamcmd_path[-1]
    while current.is_dir():
        candidate = current / executable
        if candidate.is_file():
            return candidate
        for directory in directories:
            if (current / directory).is_dir():
                current = current / directory
                break
        else:
            return None
    return None


class SteamDistro(DistroBase):
    """
    Upload builds to Steam.

    The VDF build scripts in the scripts folder can reference the builds
    with path variables like `{{StandaloneOSX}}`, as well as `{{project}}`
    and `{{scripts}}`. The scripts are copied to a temporary directory with
    the variables substituted before steamcmd is run with the app script.
    """

    kind = "steam"

    def __init__(
        self,
        name: str,
        sdk_path: str = "",
        scripts_folder: str = "",
        app_script: str = "",
        login: Any = None,
        **kwargs,
    ):
        super().__init__(name, **kwargs)
        self.sdk_path = sdk_path
        self.scripts_folder = scripts_folder
        self.app_script = app_script
        self.login = Login.coerce(login, service="SteamDistro")
        self._steam_cmd: Optional[Path] = None

    async def validate(self, build_paths: List[BuildPath]) -> None:
        await super().validate(build_paths)

        validate_path_exists(self.sdk_path, "Steam SDK path", source=self.name)
        steamcmd_path = get_host_platform().steamcmd_path
        self._steam_cmd = find_steam_cmd(self.sdk_path, steamcmd_path)
        if self._steam_cmd is None:
            raise ConfigurationError(
                f"Could not find {steamcmd_path[-1]} at the SDK path: {self.sdk_path}", source=self.name
            )

        self.login.require_password(self.credentials, self.name)

        validate_directory_exists(self.scripts_folder, "Scripts folder", source=self.name)
        self.require_setting(self.app_script, "Name of app script")
        validate_file_exists(Path(self.scripts_folder) / self.app_script, "App script", source=self.name)

    async def process(self, build_path: BuildPath, task: TaskToken) -> Any:
        return build_path

    async def finalize(self, results: List[Any], task: TaskToken) -> None:
        password = self.login.require_password(self.credentials, self.name)

        with self.temporary_directory("steam-scripts") as scripts_dir:
            variables = {
                "project": str(self.project_dir.resolve()),
                "scripts": str(Path(self.scripts_folder).resolve()),
            }
            used = substitute_file_variables(
                Path(self.scripts_folder), scripts_dir, results, variables, source=self.name
            )
            unused = sorted(b.target.value for b in results if b.target not in used)
            if unused:
                logger.warning(f"{self.name}: Not all build targets filled into variables. "
                               f"Left over: {', '.join(unused)}")

            script_path = (scripts_dir / self.app_script).resolve()
            arguments = (f"+login {quote(self.login.user)} {quote(password)} "
                         f"+run_app_build_http {quote(script_path)} +quit")

            task.report(0, description="Uploading to Steam")
            on_output = functools.partial(self._on_output, task)
            await self.execute(ExecutionArgs(str(self._steam_cmd), arguments, on_output=on_output), task)

        logger.info(f"{self.name}: Steam upload finished")

    def _on_output(self, task: TaskToken, line: str) -> None:
        """Report the steamcmd milestones as the description of the upload step."""
        if "Logged in OK" in line:
            task.report(0, description="Logged in")
            return
        match = BUILDING_DEPOT_PATTERN.search(line)
        if match:
            task.report(0, description=f"Building depot {match.group(1)}")
            return
        match = SUCCESS_BUILD_ID_PATTERN.search(line)
        if match:
            task.report(0, description=f"Build uploaded, ID = {match.group(1)}")
