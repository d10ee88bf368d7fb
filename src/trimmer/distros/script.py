"""
Distro that runs a custom script with the builds.
"""

import logging
from pathlib import Path
from typing import Any, List, Optional

from ..models import BuildPath, ExecutionArgs
from ..orchestration import DistroBase
from ..system import quote, replace_variables
from ..tasks import TaskToken

logger = logging.getLogger(__name__)


class ScriptDistro(DistroBase):
    """
    Run a script or executable with the builds as arguments.

    In combined mode, the script is run once for all builds and the
    arguments can use these variables:

    - `{targets}`: Names of all build targets
    - `{paths}`: Paths of all builds
    - `{targetspaths}`: Target name and path pairs of all builds
    - `{project}`: Path to the project

    In individual mode, the script is run once per build with:

    - `{target}`: Name of the build target
    - `{path}`: Path of the build
    - `{project}`: Path to the project

    Values are quoted by the distro.
    """

    kind = "script"

    def __init__(
        self,
        name: str,
        script_path: str = "",
        arguments: str = "",
        individual: bool = False,
        working_dir: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(name, **kwargs)
        self.script_path = script_path
        self.arguments = arguments
        self.individual = individual
        self.working_dir = working_dir

    async def validate(self, build_paths: List[BuildPath]) -> None:
        await super().validate(build_paths)
        self.require_executable(self.script_path, "Script path")

    async def process(self, build_path: BuildPath, task: TaskToken) -> Any:
        if not self.individual:
            return build_path

        task.report(0, description=f"Running {Path(self.script_path).name} for {build_path.target.value}")
        args = self.replace_variables_individual(self.arguments, build_path)
        await self.execute(self._execution_args(args), task)
        return build_path

    async def finalize(self, results: List[Any], task: TaskToken) -> None:
        if not self.individual:
            task.report(0, description=f"Running {Path(self.script_path).name}")
            args = self.replace_variables_combined(self.arguments, results)
            await self.execute(self._execution_args(args), task)
        logger.info(f"{self.name}: Script finished")

    def replace_variables_individual(self, arguments: str, build_path: BuildPath) -> str:
        return replace_variables(arguments, {
            "target": quote(build_path.target.value),
            "path": quote(build_path.path),
            "project": quote(self.project_dir),
        })

    def replace_variables_combined(self, arguments: str, build_paths: List[BuildPath]) -> str:
        return replace_variables(arguments, {
            "targets": " ".join(quote(p.target.value) for p in build_paths),
            "paths": " ".join(quote(p.path) for p in build_paths),
            "targetspaths": " ".join(
                f"{quote(p.target.value)} {quote(p.path)}" for p in build_paths
            ),
            "project": quote(self.project_dir),
        })

    def _execution_args(self, arguments: str) -> ExecutionArgs:
        return ExecutionArgs(
            executable=self.script_path,
            arguments=arguments,
            working_dir=self.working_dir or self.project_dir,
        )
