"""
Distro that runs other distros.
"""

import logging
from typing import Any, List, Optional, Sequence

from ..models import BuildPath, DistroState
from ..orchestration import DistroBase
from ..tasks import TaskToken
from ..validation import ConfigurationError, OperationCancelledError, TrimmerError

logger = logging.getLogger(__name__)


class MetaDistro(DistroBase):
    """
    Run multiple distros one after the other, each with its own builds.

    The run stops at the first distro that doesn't succeed.
    """

    kind = "meta"
    can_run_without_build_targets = True

    def __init__(self, name: str, distros: Optional[Sequence[DistroBase]] = None, **kwargs):
        super().__init__(name, **kwargs)
        self.distros: List[DistroBase] = list(distros or [])

    async def validate(self, build_paths: List[BuildPath]) -> None:
        await super().validate(build_paths)
        if not self.distros:
            raise ConfigurationError("No distros to run", source=self.name)
        if build_paths:
            logger.warning(f"{self.name}: Builds are ignored, the distros run with their own builds")

    async def run_distribute(self, build_paths: List[BuildPath], task: TaskToken) -> List[Any]:
        await self.validate(build_paths)

        total = len(self.distros)
        for index, distro in enumerate(self.distros):
            task.throw_if_cancellation_requested(self.name)
            task.report(index, total, description=f"Running {distro.name}")

            state = await distro.distribute(cancellation=task.cancellation)
            if state is DistroState.CANCELLED:
                raise OperationCancelledError(f"{distro.name} was cancelled", source=self.name)
            if state is not DistroState.SUCCEEDED:
                raise TrimmerError(f"{distro.name} {state.value}", source=self.name)

        task.report(total, description="All distros finished")
        return [distro.last_record for distro in self.distros]
