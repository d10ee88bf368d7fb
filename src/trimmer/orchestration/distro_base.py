"""
Base class of all distribution plugins.

A distro takes a set of finished builds and ships them somewhere: into an
archive, to a server or to a store. `DistroBase` implements what all of them
share: the run state machine with its re-entrance guard, the per-artifact
step sequence, cancellation, progress reporting and the run workspace, a
temporary directory that is removed on every exit path.
"""

import asyncio
import contextlib
import functools
import logging
import re
import shutil
import tempfile
import time
from pathlib import Path
from typing import Any, ClassVar, Iterable, Iterator, List, Optional

from ..execution import ProcessRunner
from ..models import (
    BuildPath,
    DistroState,
    ExecutionArgs,
    ExecutionResult,
    RunnerConfig,
    RunRecord,
)
from ..system import CredentialStore, EnvironmentCredentialStore, resolve_executable
from ..tasks import CancellationSource, CancellationToken, ProgressRegistry, TaskToken, get_progress_registry
from ..validation import (
    ConfigurationError,
    DistroBusyError,
    ErrorSeverity,
    LaunchFailure,
    OperationCancelledError,
    TrimmerError,
    handle_error,
)
from .shared_state import RunState

logger = logging.getLogger(__name__)


class DistroBase:
    """
    Base class for distribution plugins.

    Subclasses implement `process` and optionally override `validate`,
    `supports`, `preprocess` and `finalize`. A run calls them in this order::

        validate(builds)
        for every build accepted by supports():
            preprocess(build) -> process(build)
        finalize(results)

    Args:
        name: Name of the distro, prefixed to log messages and errors
        runner: Process runner, a runner owned by the distro by default
        credentials: Store for login passwords
        registry: Progress registry, the process-wide registry by default
        config: Runner configuration
        builds: Configured builds, used when a run is started without builds
    """

    # Plugin kind used in configuration files.
    kind: ClassVar[str] = ""
    # Whether the distro can run without any builds (e.g. meta distros).
    can_run_without_build_targets: ClassVar[bool] = False
    # Continue with the remaining builds when one fails, raising the first
    # failure after the batch. Otherwise the run stops at the first failure.
    continue_on_artifact_failure: ClassVar[bool] = False

    def __init__(
        self,
        name: str,
        runner: Optional[ProcessRunner] = None,
        credentials: Optional[CredentialStore] = None,
        registry: Optional[ProgressRegistry] = None,
        config: Optional[RunnerConfig] = None,
        builds: Optional[Iterable[BuildPath]] = None,
    ):
        self.name = name
        self.config = config
        self.builds: List[BuildPath] = list(builds or [])
        self.runner = runner if runner is not None else ProcessRunner(owner=name, config=config)
        self.credentials = credentials if credentials is not None else EnvironmentCredentialStore()
        self.registry = registry if registry is not None else get_progress_registry()

        self._state = DistroState.IDLE
        self._run: Optional[RunState] = None
        self.last_error: Optional[BaseException] = None
        self.last_record: Optional[RunRecord] = None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} {self._state.value}>"

    # ------ State ------

    @property
    def state(self) -> DistroState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is DistroState.RUNNING

    @property
    def workspace(self) -> Optional[Path]:
        """Temporary directory of the active run, None when not running."""
        return self._run.workspace if self._run is not None else None

    @property
    def project_dir(self) -> Path:
        if self.config is not None:
            return Path(self.config.project_dir)
        return Path.cwd()

    # ------ Running ------

    async def distribute(
        self,
        build_paths: Optional[Iterable[BuildPath]] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> DistroState:
        """
        Run the distribution and wait for it to end.

        Without build paths, the configured builds are distributed.

        Errors don't propagate, they are logged and end the run in the
        FAILED or CANCELLED state.

        Returns:
            The final state of the run

        Raises:
            DistroBusyError: If a run of this distro is already active
        """
        if self.is_running:
            raise DistroBusyError("Distribution is already running", source=self.name)
        run = self._begin(cancellation)
        return await self._distribute(self._select_builds(build_paths), run)

    def start(
        self,
        build_paths: Optional[Iterable[BuildPath]] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> Optional["asyncio.Task[DistroState]"]:
        """
        Start the distribution in the background.

        Must be called from a running event loop.

        Returns:
            The task of the run, None if a run is already active
        """
        if self.is_running:
            logger.warning(f"{self.name}: Distribution is already running")
            return None
        run = self._begin(cancellation)
        task = asyncio.ensure_future(self._distribute(self._select_builds(build_paths), run))
        task.add_done_callback(functools.partial(self._on_background_done, run))
        return task

    def cancel(self) -> bool:
        """
        Request cancellation of the active run. Running processes are
        terminated.

        Returns:
            False if no run is active
        """
        run = self._run
        if run is None:
            return False
        logger.info(f"{self.name}: Cancellation requested")
        run.cancellation.cancel()
        return True

    def _on_background_done(self, run: RunState, task: "asyncio.Task[DistroState]") -> None:
        # A task cancelled before its first step never enters _distribute
        if not task.cancelled() or self._run is not run:
            return
        run.cancellation.close()
        self._run = None
        self._state = DistroState.CANCELLED
        self.last_record = RunRecord(
            distro=self.name,
            state=DistroState.CANCELLED,
            started_at=run.started_at,
            finished_at=time.time(),
        )
        logger.info(f"{self.name}: Distribution cancelled before it started")

    def _select_builds(self, build_paths: Optional[Iterable[BuildPath]]) -> List[BuildPath]:
        if build_paths is None:
            return list(self.builds)
        return list(build_paths)

    def _begin(self, cancellation: Optional[CancellationToken]) -> RunState:
        self._state = DistroState.RUNNING
        self._run = RunState(cancellation=CancellationSource(cancellation))
        self.last_error = None
        return self._run

    async def _distribute(self, build_paths: List[BuildPath], run: RunState) -> DistroState:
        state = DistroState.FAILED

        try:
            run.workspace = self._create_workspace()
            run.task = TaskToken.start(self.name, cancellation=run.cancellation.token, registry=self.registry)
            logger.info(f"{self.name}: Distribution started with {len(build_paths)} build(s)")

            await self.run_distribute(build_paths, run.task)
            state = DistroState.SUCCEEDED

        except OperationCancelledError as e:
            state = DistroState.CANCELLED
            self.last_error = e
        except asyncio.CancelledError:
            state = DistroState.CANCELLED
            raise
        except TrimmerError as e:
            self.last_error = e
            detail = e.message if e.source in (None, self.name) else str(e)
            logger.error(f"{self.name}: Distribution failed: {detail}")
        except Exception as e:
            self.last_error = e
            handle_error(
                error=e,
                context=f"{self.name} distribution",
                severity=ErrorSeverity.CRITICAL,
                reraise=False,
                logger=logger,
            )
        finally:
            if run.task is not None:
                run.task.remove()
            run.cancellation.close()
            self._remove_directory(run.workspace, "run workspace")
            self._run = None
            self._state = state
            self.last_record = RunRecord(
                distro=self.name,
                state=state,
                started_at=run.started_at,
                finished_at=time.time(),
                error=str(self.last_error) if self.last_error is not None else None,
                artifacts=[str(build_path.path) for build_path in build_paths],
            )

        logger.info(f"{self.name}: Distribution {state.value} "
                    f"after {self.last_record.duration_seconds:.1f}s")
        return state

    # ------ Step template ------

    async def run_distribute(self, build_paths: List[BuildPath], task: TaskToken) -> List[Any]:
        """
        Run the distribution steps for all builds.

        Returns:
            The results of `process`, one per processed build
        """
        await self.validate(build_paths)

        supported = []
        for build_path in build_paths:
            if self.supports(build_path):
                supported.append(build_path)
            else:
                logger.warning(f"{self.name}: Build target {build_path.target.value} not supported, skipping")

        task.report(0, len(supported))

        results: List[Any] = []
        failures: List[TrimmerError] = []
        for build_path in supported:
            task.throw_if_cancellation_requested(self.name)
            try:
                prepared = await self.preprocess(build_path, task)
                results.append(await self.process(prepared, task))
            except OperationCancelledError:
                raise
            except TrimmerError as e:
                if not self.continue_on_artifact_failure:
                    raise
                logger.error(f"{self.name}: {build_path.target.value} build failed: {e.message}")
                failures.append(e)
            task.advance()

        if failures:
            raise failures[0]

        task.throw_if_cancellation_requested(self.name)
        await self.finalize(results, task)
        return results

    async def validate(self, build_paths: List[BuildPath]) -> None:
        """
        Check the configuration before anything is run.

        Raises:
            ConfigurationError: If a setting or build is missing or invalid
        """
        if not build_paths and not self.can_run_without_build_targets:
            raise ConfigurationError("No builds to distribute", source=self.name)
        for build_path in build_paths:
            if not build_path.exists():
                raise ConfigurationError(f"Build does not exist: {build_path.path}", source=self.name)

    def supports(self, build_path: BuildPath) -> bool:
        """Whether the distro can process builds of the given target."""
        return True

    async def preprocess(self, build_path: BuildPath, task: TaskToken) -> BuildPath:
        """Prepare a build before it's processed, returns the build to process."""
        return build_path

    async def process(self, build_path: BuildPath, task: TaskToken) -> Any:
        """Distribute a single build."""
        raise NotImplementedError

    async def finalize(self, results: List[Any], task: TaskToken) -> None:
        """Called after all builds have been processed successfully."""

    # ------ Helpers ------

    def require_setting(self, value: Any, description: str) -> Any:
        """
        Raises:
            ConfigurationError: If the value is empty
        """
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ConfigurationError(f"{description} not set", source=self.name)
        return value

    def require_executable(self, executable: Optional[str], description: str) -> str:
        """
        Resolve a tool before anything is run.

        Raises:
            ConfigurationError: If the tool is not set or cannot be found
        """
        self.require_setting(executable, description)
        try:
            return resolve_executable(executable, source=self.name)
        except LaunchFailure as e:
            raise ConfigurationError(f"{description} not found: {e.message}", source=self.name) from e

    async def execute(
        self,
        args: ExecutionArgs,
        task: Optional[TaskToken] = None,
        check: bool = True,
    ) -> ExecutionResult:
        """
        Run an external tool as part of the active run.

        Args:
            args: Execution arguments
            task: Token whose cancellation terminates the tool
            check: Raise for failing exit codes

        Raises:
            OperationCancelledError: If the run was cancelled before, during
                or right after the execution
            ProcessFailure: If `check` is set and the tool failed
            LaunchFailure: If the tool could not be started
        """
        if task is not None:
            cancellation = task.cancellation
        elif self._run is not None:
            cancellation = self._run.cancellation.token
        else:
            cancellation = CancellationToken.none()

        cancellation.throw_if_cancellation_requested(self.name)
        result = await self.runner.execute(args, cancellation)
        cancellation.throw_if_cancellation_requested(self.name)

        if check:
            result.check(self.name)
        return result

    @contextlib.contextmanager
    def temporary_directory(self, prefix: str = "tmp") -> Iterator[Path]:
        """
        Create a temporary directory inside the run workspace, removed when
        the context exits.

        Raises:
            RuntimeError: If no run is active
        """
        workspace = self.workspace
        if workspace is None:
            raise RuntimeError(f"{self.name}: Temporary directories require an active run")
        path = Path(tempfile.mkdtemp(prefix=f"{prefix}-", dir=workspace))
        try:
            yield path
        finally:
            self._remove_directory(path, "temporary directory")

    def _create_workspace(self) -> Path:
        temp_root = self.config.temp_root if self.config is not None else None
        if temp_root is not None:
            Path(temp_root).mkdir(parents=True, exist_ok=True)
        slug = re.sub(r"[^A-Za-z0-9_.-]", "_", self.name)
        path = Path(tempfile.mkdtemp(prefix=f"trimmer-{slug}-", dir=temp_root))
        logger.debug(f"{self.name}: Created run workspace {path}")
        return path

    def _remove_directory(self, path: Optional[Path], what: str) -> None:
        if path is None or not path.exists():
            return
        try:
            shutil.rmtree(path)
            logger.debug(f"{self.name}: Removed {what} {path}")
        except OSError as e:
            handle_error(
                error=e,
                context=f"removing {what} of {self.name}",
                severity=ErrorSeverity.WARNING,
                reraise=False,
                logger=logger,
            )
