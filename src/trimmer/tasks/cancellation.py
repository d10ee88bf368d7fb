"""
Cooperative cancellation for asynchronous operations.

A `CancellationSource` owns the cancellation signal; the read-only
`CancellationToken` is handed to the operations that should observe it.
Sources can be linked to a parent token so that cancelling a run cancels
every nested operation, while a nested operation can be cancelled on its own.
"""

import asyncio
import logging
from typing import Callable, Dict, Optional

from ..validation import OperationCancelledError

logger = logging.getLogger(__name__)


class CancellationToken:
    """Observes the cancellation signal of a `CancellationSource`."""

    def __init__(self, source: "CancellationSource"):
        self._source = source

    @classmethod
    def none(cls) -> "CancellationToken":
        """A token that is never cancelled."""
        return CancellationSource().token

    @property
    def is_cancellation_requested(self) -> bool:
        return self._source.is_cancellation_requested

    def register(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Register a callback invoked once when cancellation is requested.

        The callback is invoked immediately if cancellation has already been
        requested.

        Returns:
            Function that removes the registration again
        """
        return self._source._register(callback)

    def throw_if_cancellation_requested(self, source: Optional[str] = None) -> None:
        """
        Raises:
            OperationCancelledError: If cancellation has been requested
        """
        if self.is_cancellation_requested:
            raise OperationCancelledError(source=source)

    async def wait(self) -> None:
        """Wait until cancellation is requested."""
        await self._source._event.wait()

    async def sleep(self, seconds: float) -> None:
        """
        Sleep for the given duration unless cancellation is requested first.

        Raises:
            OperationCancelledError: If cancellation is requested before or
                during the sleep
        """
        self.throw_if_cancellation_requested()
        try:
            await asyncio.wait_for(self.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise OperationCancelledError()


class CancellationSource:
    """
    Owns a cancellation signal.

    Args:
        parent: Optional token of an enclosing operation; cancelling it
            cancels this source as well
    """

    def __init__(self, parent: Optional[CancellationToken] = None):
        self._event = asyncio.Event()
        self._callbacks: Dict[int, Callable[[], None]] = {}
        self._next_callback_id = 1
        self._unlink: Optional[Callable[[], None]] = None
        self.token = CancellationToken(self)
        if parent is not None:
            self._unlink = parent.register(self.cancel)

    @property
    def is_cancellation_requested(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Request cancellation. Only the first call has an effect."""
        if self._event.is_set():
            return
        self._event.set()
        logger.debug("Cancellation requested")

        callbacks = list(self._callbacks.values())
        self._callbacks.clear()
        for callback in callbacks:
            self._invoke(callback)

    def close(self) -> None:
        """Detach from the parent token."""
        if self._unlink is not None:
            self._unlink()
            self._unlink = None

    def _register(self, callback: Callable[[], None]) -> Callable[[], None]:
        if self._event.is_set():
            self._invoke(callback)
            return lambda: None

        callback_id = self._next_callback_id
        self._next_callback_id += 1
        self._callbacks[callback_id] = callback

        def unregister() -> None:
            self._callbacks.pop(callback_id, None)

        return unregister

    @staticmethod
    def _invoke(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception as e:
            logger.warning(f"Error in cancellation callback: {e}")
