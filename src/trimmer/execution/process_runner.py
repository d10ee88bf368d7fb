"""
Asynchronous execution of external tools.

This module provides the ProcessRunner, which spawns a tool, streams its
stdout and stderr line by line to callbacks while it runs, optionally feeds
it input on stdin and interprets its exit code. Running tools can be
cancelled through a cancellation token or all at once through the runner.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional

from ..models import (
    ExecutionArgs,
    ExecutionResult,
    ExitOutcome,
    LineCallback,
    RunnerConfig,
    TimeoutConstants,
)
from ..system import get_host_platform, resolve_executable, split_arguments
from ..tasks.cancellation import CancellationToken
from ..validation import LaunchFailure
from .process_tree import ProcessTreeTerminator

logger = logging.getLogger(__name__)

# Maximum length of a single output line
STREAM_LIMIT = 1024 * 1024


@dataclass
class _Execution:
    """Bookkeeping of one in-flight process."""
    process: asyncio.subprocess.Process
    name: str
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    finished: asyncio.Event = field(default_factory=asyncio.Event)


def normalize_exit_code(returncode: int) -> int:
    """
    Map a signal termination (negative return code) to the shell convention
    of 128 + signal number, e.g. SIGKILL to 137 and SIGTERM to 143.
    """
    if returncode < 0:
        return 128 - returncode
    return returncode


class ProcessRunner:
    """
    Runs external tools on the asyncio event loop.

    Each call to `execute` runs exactly one process. A runner can run several
    processes concurrently but distros use it sequentially.

    Args:
        owner: Name prefixed to log messages, usually the distro name
        config: Runner configuration, for the cancellation exit codes and
            termination timeouts
    """

    def __init__(self, owner: str = "ProcessRunner", config: Optional[RunnerConfig] = None):
        self.owner = owner
        self.config = config
        if config is not None:
            self.cancellation_exit_codes: FrozenSet[int] = frozenset(config.cancellation_exit_codes)
        else:
            self.cancellation_exit_codes = get_host_platform().cancellation_exit_codes
        self._terminator = ProcessTreeTerminator(config)
        self._executions: Dict[int, _Execution] = {}

    @property
    def running(self) -> List[int]:
        """PIDs of the processes currently in flight."""
        return list(self._executions)

    async def execute(
        self,
        args: ExecutionArgs,
        cancellation: Optional[CancellationToken] = None,
    ) -> ExecutionResult:
        """
        Run a process to completion.

        Output lines are dispatched to the callbacks as they are read, all of
        them before this method returns.

        Args:
            args: Executable, arguments and callbacks
            cancellation: Token that terminates the process when cancelled

        Returns:
            The execution result. Failing exit codes are reported in the
            result, not raised.

        Raises:
            LaunchFailure: If the executable cannot be found or started
            OperationCancelledError: If cancellation was requested before
                the process was started
        """
        name = args.short_name
        executable = resolve_executable(args.executable, args.env, source=self.owner)

        try:
            argv = split_arguments(args.arguments)
        except ValueError as e:
            raise LaunchFailure(f"Invalid arguments for {name}: {e}",
                                executable=executable, source=self.owner) from e

        env = None
        if args.env:
            env = os.environ.copy()
            env.update(args.env)

        if cancellation is not None:
            cancellation.throw_if_cancellation_requested(self.owner)

        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                *argv,
                stdin=asyncio.subprocess.PIPE if args.input is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(args.working_dir) if args.working_dir else None,
                env=env,
                start_new_session=True,
                limit=STREAM_LIMIT,
            )
        except OSError as e:
            raise LaunchFailure(f"Could not start {name}: {e}",
                                executable=executable, source=self.owner) from e

        logger.debug(f"{self.owner}: Started {name} (PID {process.pid})")

        execution = _Execution(process=process, name=name)
        self._executions[process.pid] = execution
        unregister = None
        if cancellation is not None:
            unregister = cancellation.register(execution.cancel_event.set)

        try:
            return await self._run(execution, args)
        finally:
            if unregister is not None:
                unregister()
            self._executions.pop(process.pid, None)
            execution.finished.set()

    async def cancel_all(self) -> None:
        """Terminate all in-flight processes and wait for them to finish."""
        executions = list(self._executions.values())
        if not executions:
            return
        logger.info(f"{self.owner}: Cancelling {len(executions)} running process(es)")
        for execution in executions:
            execution.cancel_event.set()
        await asyncio.gather(*(execution.finished.wait() for execution in executions))

    async def _run(self, execution: _Execution, args: ExecutionArgs) -> ExecutionResult:
        process = execution.process
        stdout_lines: List[str] = []
        stderr_lines: List[str] = []

        pump_task = asyncio.gather(
            self._pump(process.stdout, stdout_lines, args.on_output, execution.name),
            self._pump(process.stderr, stderr_lines, args.on_error, execution.name),
        )
        input_task = None
        if args.input is not None:
            input_task = asyncio.create_task(self._write_input(process, args.input, execution.name))
        exit_task = asyncio.create_task(process.wait())
        cancel_task = asyncio.create_task(execution.cancel_event.wait())

        cancelled = False
        try:
            done, _ = await asyncio.wait({exit_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
            if exit_task not in done:
                cancelled = True
                logger.info(f"{self.owner}: Cancelling {execution.name} (PID {process.pid})")
                await self._terminate(execution)

            returncode = await exit_task
            await self._drain(pump_task, execution.name)
        except asyncio.CancelledError:
            await self._terminate(execution)
            raise
        finally:
            for task in (cancel_task, exit_task, pump_task, input_task):
                if task is not None and not task.done():
                    task.cancel()

        exit_code = normalize_exit_code(returncode)
        if cancelled or exit_code in self.cancellation_exit_codes:
            outcome = ExitOutcome.CANCELLED
        elif exit_code == 0:
            outcome = ExitOutcome.SUCCEEDED
        else:
            outcome = ExitOutcome.FAILED

        result = ExecutionResult(
            executable=str(args.executable),
            exit_code=exit_code,
            outcome=outcome,
            stdout="\n".join(stdout_lines),
            stderr="\n".join(stderr_lines),
            cancelled=cancelled,
        )

        if outcome is ExitOutcome.FAILED and not args.silent_error:
            logger.error(f"{self.owner}: Failed to execute {execution.name}: "
                         f"{result.stderr}\nOutput: {result.stdout}")
        else:
            logger.debug(f"{self.owner}: {execution.name} exited with code {exit_code} ({outcome.value})")

        return result

    async def _pump(
        self,
        stream: Optional[asyncio.StreamReader],
        lines: List[str],
        callback: Optional[LineCallback],
        name: str,
    ) -> None:
        """Read a stream line by line until EOF, dispatching every line."""
        if stream is None:
            return
        while True:
            try:
                raw = await stream.readline()
            except ValueError:
                logger.warning(f"{self.owner}: Dropped output line of {name} longer than {STREAM_LIMIT} bytes")
                continue
            if not raw:
                break
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            lines.append(line)
            if callback is not None:
                try:
                    callback(line)
                except Exception as e:
                    logger.warning(f"{self.owner}: Output callback for {name} failed: {e}")

    async def _write_input(self, process: asyncio.subprocess.Process, text: str, name: str) -> None:
        """Write the input to stdin and close it."""
        stdin = process.stdin
        if stdin is None:
            return
        try:
            stdin.write(text.encode("utf-8"))
            await stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            logger.debug(f"{self.owner}: {name} closed stdin before reading all input")
        finally:
            stdin.close()

    async def _drain(self, pump_task: "asyncio.Future", name: str) -> None:
        """Wait for the output pumps to reach EOF after the process exited."""
        try:
            await asyncio.wait_for(pump_task, timeout=TimeoutConstants.OUTPUT_DRAIN_TIMEOUT)
        except asyncio.TimeoutError:
            # A detached child keeps the pipes open
            logger.warning(f"{self.owner}: Output of {name} still open after exit, stopped reading")

    async def _terminate(self, execution: _Execution) -> None:
        """Terminate the process tree without blocking the event loop."""
        if execution.process.returncode is not None:
            return
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            None, self._terminator.terminate, execution.process.pid, execution.name
        )


async def execute(
    executable: str,
    arguments: str = "",
    cancellation: Optional[CancellationToken] = None,
    **kwargs,
) -> int:
    """
    Run a tool with a default runner and return its exit code.

    Keyword arguments are passed on to `ExecutionArgs`.
    """
    runner = ProcessRunner()
    result = await runner.execute(ExecutionArgs(executable, arguments, **kwargs), cancellation)
    return result.exit_code
