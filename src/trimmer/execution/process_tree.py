"""
Process tree termination.

External tools routinely spawn helpers of their own (steamcmd, butler and
altool all do), so cancelling a tool means terminating its whole process
tree. Termination escalates through several phases and finally cleans up the
process group the tool was started in.
"""

import logging
import os
import signal
import time
from typing import List, Optional

import psutil

from ..models import RunnerConfig, TimeoutConstants

logger = logging.getLogger(__name__)


class ProcessTreeTerminator:
    """
    Multi-phase termination of a process and all of its children.

    The phase timeouts come from the runner configuration, falling back to
    `TimeoutConstants`.
    """

    def __init__(self, config: Optional[RunnerConfig] = None):
        if config is not None:
            graceful = config.termination_graceful_timeout
            interrupt = config.termination_interrupt_timeout
            force = config.termination_force_timeout
        else:
            graceful = TimeoutConstants.TERMINATION_GRACEFUL_TIMEOUT
            interrupt = TimeoutConstants.TERMINATION_INTERRUPT_TIMEOUT
            force = TimeoutConstants.TERMINATION_FORCE_TIMEOUT

        self.phases = [
            {"name": "graceful", "signal": "SIGTERM", "timeout": graceful, "force": False},
            {"name": "interrupt", "signal": "SIGINT", "timeout": interrupt, "force": False},
            {"name": "force_kill", "signal": "SIGKILL", "timeout": force, "force": True},
        ]
        self.poll_interval = 0.05

    def terminate(self, pid: int, name: str, process_group: bool = True) -> None:
        """
        Terminate a process and its process tree, blocking until done.

        Args:
            pid: PID of the root process
            name: Name used in log messages
            process_group: Whether the process leads its own process group,
                which is killed after the phases complete
        """
        if pid <= 0:
            logger.warning(f"Invalid PID {pid} for {name}, skipping termination")
            return

        logger.info(f"Terminating {name} (PID: {pid}) and its process tree")

        try:
            parent = psutil.Process(pid)
        except psutil.NoSuchProcess:
            logger.debug(f"Process {name} (PID: {pid}) already terminated")
            return
        except psutil.AccessDenied:
            logger.warning(f"Access denied to process {name} (PID: {pid}), attempting force kill")
            self._force_kill_process(pid)
            return

        # Children are collected up front, they are reparented once the parent exits
        known_children = self._get_process_children(parent)

        for phase_idx, phase in enumerate(self.phases):
            children = known_children + [
                child for child in self._get_process_children(parent)
                if child not in known_children
            ]
            all_processes = [parent] + children
            alive = [process for process in all_processes if self._is_process_alive(process)]
            if not alive:
                break

            if phase_idx == 0:
                logger.debug(f"Phase {phase['name']}: Terminating {name} and {len(children)} children")
            else:
                logger.debug(f"Phase {phase['name']}: {len(alive)} processes still running")

            signaled = self._apply_termination_signal(alive, phase)
            if not signaled:
                continue

            remaining = self._wait_for_termination(signaled, phase["timeout"])
            if not remaining:
                logger.debug(f"All processes terminated in phase {phase['name']}")
                break

            logger.warning(f"Phase {phase['name']}: {len(remaining)} processes still alive")
            if phase_idx == len(self.phases) - 1:
                self._handle_stubborn_processes(remaining, name)

        if process_group:
            self._cleanup_process_group(pid, name)

    def _is_process_alive(self, process: psutil.Process) -> bool:
        """Safely check if a process is still alive and not a zombie."""
        try:
            if not process.is_running():
                return False
            return process.status() not in (psutil.STATUS_ZOMBIE, psutil.STATUS_DEAD)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return False

    def _get_process_children(self, parent: psutil.Process) -> List[psutil.Process]:
        """Get all living children of a process, handling races with exiting processes."""
        try:
            return [child for child in parent.children(recursive=True) if self._is_process_alive(child)]
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return []

    def _apply_termination_signal(self, processes: List[psutil.Process], phase: dict) -> List[psutil.Process]:
        """Send the phase's signal to the processes and return those that were signaled."""
        signaled = []
        signal_name = phase["signal"]

        for process in processes:
            try:
                if phase["force"]:
                    process.kill()
                elif signal_name == "SIGTERM":
                    process.terminate()
                else:
                    process.send_signal(signal.SIGINT)
                signaled.append(process)
                logger.debug(f"Sent {signal_name} to PID {process.pid}")
            except psutil.NoSuchProcess:
                continue
            except psutil.AccessDenied:
                logger.warning(f"Access denied sending {signal_name} to PID {process.pid}")

        return signaled

    def _wait_for_termination(self, processes: List[psutil.Process], timeout: float) -> List[psutil.Process]:
        """Wait for processes to terminate and return any that are still alive."""
        # Polls instead of psutil.wait_procs, which would reap the runner's own
        # child before asyncio collects its exit status.
        deadline = time.monotonic() + timeout
        while True:
            still_alive = [process for process in processes if self._is_process_alive(process)]
            if not still_alive or time.monotonic() >= deadline:
                return still_alive
            time.sleep(self.poll_interval)

    def _handle_stubborn_processes(self, processes: List[psutil.Process], name: str) -> None:
        """Log processes that refuse to terminate even after SIGKILL."""
        logger.error(f"Failed to terminate {len(processes)} processes of {name}")
        for process in processes:
            try:
                logger.error(f"Stubborn process: PID {process.pid}, name: {process.name()}, "
                             f"status: {process.status()}")
            except psutil.Error as e:
                logger.error(f"Could not get info for stubborn process PID {process.pid}: {e}")

    def _cleanup_process_group(self, pid: int, name: str) -> None:
        """Kill what is left of the process group led by the terminated process."""
        if not hasattr(os, "killpg"):
            return
        try:
            os.killpg(pid, signal.SIGKILL)
            logger.debug(f"Sent SIGKILL to process group {pid} of {name}")
        except ProcessLookupError:
            pass
        except PermissionError:
            logger.debug(f"No permission to kill process group {pid}")

    def _force_kill_process(self, pid: int) -> None:
        """Force kill a single process by PID as last resort."""
        try:
            os.kill(pid, signal.SIGKILL)
            logger.warning(f"Force killed process PID {pid}")
        except ProcessLookupError:
            pass
        except PermissionError as e:
            logger.error(f"Failed to force kill PID {pid}: {e}")
