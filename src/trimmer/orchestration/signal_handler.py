"""
Signal handling for the orchestration module.

This module turns SIGINT/SIGTERM into cancellation of the active distribution
runs, using a global registry of running distros.
"""

import asyncio
import logging
import signal
import threading
from typing import TYPE_CHECKING, Any, Dict, Tuple

if TYPE_CHECKING:
    from .distro_base import DistroBase

logger = logging.getLogger(__name__)

# Signal handlers cannot be bound to instances, so the active distros are
# kept in a registry together with the event loop they run on.
_active_distros: Dict[int, Tuple["DistroBase", asyncio.AbstractEventLoop]] = {}
_active_distros_lock = threading.RLock()


class SignalHandler:
    """
    Manages signal registration and cleanup for distribution runs.

    Usable as a context manager that installs the handlers on entry and
    restores the original ones on exit.
    """

    def __init__(self):
        self._original_sigint_handler = None
        self._original_sigterm_handler = None
        self._signal_handlers_set = False

    def __enter__(self) -> "SignalHandler":
        self.setup_signal_handlers()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.cleanup_signal_handlers()

    def setup_signal_handlers(self) -> None:
        """Install the handlers for SIGINT and SIGTERM."""
        try:
            self._original_sigint_handler = signal.signal(signal.SIGINT, self._global_signal_handler)
            self._original_sigterm_handler = signal.signal(signal.SIGTERM, self._global_signal_handler)
            self._signal_handlers_set = True
            logger.debug("Signal handlers set up")
        except ValueError as e:
            # Only the main thread can install signal handlers
            logger.warning(f"Failed to set up signal handlers: {e}")

    def cleanup_signal_handlers(self) -> None:
        """Restore the original signal handlers."""
        if not self._signal_handlers_set:
            return
        try:
            if self._original_sigint_handler is not None:
                signal.signal(signal.SIGINT, self._original_sigint_handler)
            if self._original_sigterm_handler is not None:
                signal.signal(signal.SIGTERM, self._original_sigterm_handler)
            logger.debug("Signal handlers restored")
        finally:
            self._signal_handlers_set = False

    def register_distro(self, distro: "DistroBase", loop: asyncio.AbstractEventLoop) -> None:
        """
        Register a distro whose run should be cancelled on a signal.

        Args:
            distro: The distro
            loop: The event loop the distro runs on
        """
        with _active_distros_lock:
            _active_distros[id(distro)] = (distro, loop)
            logger.debug(f"Registered {distro.name} for signal handling")

    def unregister_distro(self, distro: "DistroBase") -> None:
        with _active_distros_lock:
            if _active_distros.pop(id(distro), None) is not None:
                logger.debug(f"Unregistered {distro.name} from signal handling")

    @staticmethod
    def _global_signal_handler(signum: int, frame: Any) -> None:
        """
        Request cancellation of all registered distros.

        The cancellation is scheduled on each distro's event loop, as the
        handler may interrupt the loop at any point.
        """
        logger.warning(f"Signal {signum} received. Cancelling active distributions.")
        with _active_distros_lock:
            for distro, loop in _active_distros.values():
                if loop.is_closed():
                    continue
                logger.info(f"Requesting cancellation of {distro.name}")
                loop.call_soon_threadsafe(distro.cancel)
