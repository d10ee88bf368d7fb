"""
Cooperative routine scheduler based on generators.

Routines are generators advanced one step per tick of a driver loop. What a
routine yields decides how it continues:

- `yield` (or `yield None`) pauses the routine until the next tick.
- `yield other_generator()` runs the other generator as a sub-routine. The
  parent is suspended until the sub-routine finished and then resumed
  immediately with the sub-routine's result as the value of the `yield`.
- Any other value is recorded as the routine's last produced value and the
  routine pauses until the next tick.

The result of a routine is its return value or, when it returns None, the
last value it produced. The parent can also read the result of its finished
sub-routine once through `get_subroutine_result()`, between the sub-routine
finishing and its own next yield::

    def child():
        yield
        yield 42

    def parent(scheduler):
        value = yield child()
        assert scheduler.get_subroutine_result() == value == 42

Exceptions raised by a sub-routine are thrown into the parent at its yield.
"""

import asyncio
import inspect
import logging
from typing import Any, Generator, List, Optional, Tuple

logger = logging.getLogger(__name__)

Routine = Generator[Any, Any, Any]

# Routine to advance next, with the value or error to send into it
_Advance = Tuple["_RoutineState", Any, Optional[BaseException]]


class RoutineHandle:
    """Observes the outcome of a top-level routine."""

    def __init__(self, name: str):
        self.name = name
        self._done = False
        self._result: Any = None
        self._error: Optional[BaseException] = None
        self._cancelled = False

    @property
    def done(self) -> bool:
        return self._done

    @property
    def result(self) -> Any:
        return self._result

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def __repr__(self) -> str:
        if not self._done:
            state = "running"
        elif self._cancelled:
            state = "cancelled"
        elif self._error is not None:
            state = f"failed: {self._error!r}"
        else:
            state = f"result={self._result!r}"
        return f"<RoutineHandle {self.name} {state}>"


class _RoutineState:
    """Bookkeeping of one routine in the scheduler."""

    def __init__(self, generator: Routine, handle: Optional[RoutineHandle] = None,
                 parent: Optional["_RoutineState"] = None):
        self.generator = generator
        # Only top-level routines have a handle.
        self.handle = handle
        self.parent = parent
        self.child: Optional["_RoutineState"] = None
        self.last_value: Any = None

    @property
    def name(self) -> str:
        return getattr(self.generator, "__name__", repr(self.generator))


class RoutineScheduler:
    """
    Single-threaded scheduler for generator routines.

    A routine is either in the run list, suspended waiting for its sub-routine
    or finished and forgotten. Only one routine is advanced at a time.
    """

    def __init__(self):
        self._running: List[_RoutineState] = []
        self._current: Optional[_RoutineState] = None
        self._window_owner: Optional[_RoutineState] = None
        self._window_value: Any = None

    @property
    def is_idle(self) -> bool:
        """Whether no routine is waiting to be advanced."""
        return not self._running

    def __len__(self) -> int:
        return len(self._running)

    def start(self, routine: Routine) -> RoutineHandle:
        """
        Start a routine, advancing it once immediately.

        Raises:
            TypeError: If the routine is not a generator
        """
        if not inspect.isgenerator(routine):
            raise TypeError(f"Routine must be a generator, got {type(routine).__name__}")
        state = _RoutineState(routine)
        state.handle = RoutineHandle(state.name)
        self._step(state)
        return state.handle

    def tick(self) -> None:
        """
        Advance every runnable routine once.

        The run list is processed from the end: routines started or resumed
        during the tick are appended and wait for the next tick.
        """
        for state in reversed(list(self._running)):
            if state in self._running:
                self._step(state)

    def run_until_complete(self, handle: Optional[RoutineHandle] = None,
                           max_ticks: Optional[int] = None) -> Any:
        """
        Tick until the given routine finished, or until idle without a handle.

        Returns:
            The routine's result, or None without a handle

        Raises:
            RuntimeError: If `max_ticks` is exceeded
            Exception: The error of the routine, if it failed
        """
        ticks = 0
        while not self._is_complete(handle):
            if max_ticks is not None and ticks >= max_ticks:
                raise RuntimeError(f"Routines did not complete within {max_ticks} ticks")
            self.tick()
            ticks += 1

        if handle is None:
            return None
        if handle.error is not None:
            raise handle.error
        return handle.result

    async def run_async(self, handle: Optional[RoutineHandle] = None, interval: float = 0.0) -> Any:
        """
        Drive the scheduler from an asyncio event loop, one tick per iteration.

        Returns:
            The routine's result, or None without a handle
        """
        while not self._is_complete(handle):
            self.tick()
            await asyncio.sleep(interval)

        if handle is None:
            return None
        if handle.error is not None:
            raise handle.error
        return handle.result

    def cancel(self, handle: RoutineHandle) -> bool:
        """
        Stop a top-level routine and its nested sub-routines.

        The generators are closed innermost first, so their `finally` blocks
        run.

        Returns:
            False if the routine had already finished

        Raises:
            RuntimeError: If called from within the routine being cancelled
        """
        if handle.done:
            return False

        root = self._find_root(handle)
        if root is None:
            return False

        chain = [root]
        while chain[-1].child is not None:
            chain.append(chain[-1].child)
        if any(state.generator.gi_running for state in chain):
            raise RuntimeError("A routine cannot cancel itself")

        for state in reversed(chain):
            if state in self._running:
                self._running.remove(state)
            try:
                state.generator.close()
            except Exception as e:
                logger.warning(f"Error while closing routine {state.name}: {e}")
            state.child = None
            state.parent = None

        handle._done = True
        handle._cancelled = True
        logger.debug(f"Routine {handle.name} cancelled")
        return True

    def get_subroutine_result(self, default: Any = None) -> Any:
        """
        Get the result of the sub-routine that just finished.

        Can only be called once, by the parent routine, after the sub-routine
        finished and before the parent yields again.

        Raises:
            RuntimeError: If called outside of that window or a second time
        """
        if self._window_owner is None or self._window_owner is not self._current:
            raise RuntimeError(
                "The sub-routine result can only be read once by the parent "
                "routine right after the sub-routine finished"
            )
        value = self._window_value
        self._close_window()
        return default if value is None else value

    def _is_complete(self, handle: Optional[RoutineHandle]) -> bool:
        if handle is not None:
            return handle.done
        return self.is_idle

    def _find_root(self, handle: RoutineHandle) -> Optional[_RoutineState]:
        for state in self._running:
            root = state
            while root.parent is not None:
                root = root.parent
            if root.handle is handle:
                return root
        return None

    def _close_window(self) -> None:
        self._window_owner = None
        self._window_value = None

    def _step(self, state: _RoutineState, value: Any = None,
              error: Optional[BaseException] = None) -> None:
        """
        Advance a routine once and process what it yields.

        Entering a sub-routine and resuming the parent of a finished one
        continue in this loop, so a parent can run any number of
        sub-routines that finish on their first step.
        """
        previous = self._current
        pending: Optional[_Advance] = (state, value, error)
        while pending is not None:
            pending = self._advance(*pending, previous)

    def _advance(self, state: _RoutineState, value: Any, error: Optional[BaseException],
                 previous: Optional[_RoutineState]) -> Optional[_Advance]:
        """Send into a routine once, returns the routine to advance next."""
        self._current = state
        try:
            if error is not None:
                yielded = state.generator.throw(error)
            else:
                yielded = state.generator.send(value)
        except StopIteration as stop:
            self._leave_step(state, previous)
            return self._finish(state, stop.value, None)
        except Exception as e:
            self._leave_step(state, previous)
            return self._finish(state, None, e)
        self._leave_step(state, previous)

        if inspect.isgenerator(yielded):
            # The sub-routine takes the parent's place in the run list
            if state in self._running:
                self._running.remove(state)
            child = _RoutineState(yielded, parent=state)
            state.child = child
            return child, None, None

        if yielded is not None:
            state.last_value = yielded
        if state not in self._running:
            self._running.append(state)
        return None

    def _leave_step(self, state: _RoutineState, previous: Optional[_RoutineState]) -> None:
        # The result window ends when the parent yields or finishes
        if self._window_owner is state:
            self._close_window()
        self._current = previous

    def _finish(self, state: _RoutineState, return_value: Any,
                error: Optional[BaseException]) -> Optional[_Advance]:
        if state in self._running:
            self._running.remove(state)

        result = return_value if return_value is not None else state.last_value
        parent = state.parent
        state.parent = None

        if parent is None:
            handle = state.handle
            if handle is None:
                return None
            handle._done = True
            if error is not None:
                handle._error = error
                logger.error(f"Routine {handle.name} failed: {error}")
            else:
                handle._result = result
            return None

        parent.child = None
        if error is not None:
            return parent, None, error
        self._window_owner = parent
        self._window_value = result
        return parent, result, None
