"""
Hierarchical progress reporting.

The `ProgressRegistry` is the store a host UI observes: one entry per task,
nested at most one level deep. Operations don't talk to the registry directly
but through a `TaskToken`, which also carries the cancellation signal of the
operation.
"""

import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional

from .cancellation import CancellationToken

logger = logging.getLogger(__name__)


@dataclass
class ProgressEntry:
    """State of one progress task."""
    id: int
    name: str
    description: Optional[str] = None
    parent_id: int = 0
    current_step: int = 0
    total_steps: int = 0
    # Continuous progress between 0 and 1.
    fraction: float = 0.0
    started_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ProgressUpdate:
    """Snapshot of a progress entry, sent to listeners on every change."""
    id: int
    name: str
    description: Optional[str]
    parent_id: int
    current_step: int
    total_steps: int
    fraction: float
    removed: bool = False


ProgressListener = Callable[[ProgressUpdate], None]


class ProgressRegistry:
    """
    Store of all progress tasks.

    Task ids start at 1, an id of 0 means "no task".
    """

    def __init__(self):
        self._entries: Dict[int, ProgressEntry] = {}
        self._next_id = 1
        self._listeners: List[ProgressListener] = []

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> List[ProgressEntry]:
        return list(self._entries.values())

    def start(self, name: str, description: Optional[str] = None, parent_id: int = 0) -> int:
        """Create a progress task and return its id."""
        task_id = self._next_id
        self._next_id += 1
        entry = ProgressEntry(id=task_id, name=name, description=description, parent_id=parent_id)
        self._entries[task_id] = entry
        self._notify(entry)
        return task_id

    def get(self, task_id: int) -> Optional[ProgressEntry]:
        entry = self._entries.get(task_id)
        return replace(entry) if entry is not None else None

    def get_name(self, task_id: int) -> str:
        entry = self._entries.get(task_id)
        return entry.name if entry is not None else ""

    def get_total_steps(self, task_id: int) -> int:
        entry = self._entries.get(task_id)
        return entry.total_steps if entry is not None else 0

    def report_step(self, task_id: int, current_step: int, total_steps: int,
                    description: Optional[str] = None) -> None:
        """Report discrete progress of a task."""
        entry = self._entries.get(task_id)
        if entry is None:
            logger.debug(f"Ignoring progress for unknown task {task_id}")
            return
        entry.current_step = current_step
        entry.total_steps = total_steps
        if total_steps > 0:
            entry.fraction = min(1.0, max(0.0, current_step / total_steps))
        if description:
            entry.description = description
        self._notify(entry)

    def report_fraction(self, task_id: int, fraction: float, description: Optional[str] = None) -> None:
        """Report continuous progress of a task."""
        entry = self._entries.get(task_id)
        if entry is None:
            logger.debug(f"Ignoring progress for unknown task {task_id}")
            return
        entry.fraction = min(1.0, max(0.0, fraction))
        if description:
            entry.description = description
        self._notify(entry)

    def remove(self, task_id: int) -> int:
        """
        Remove a task and its children.

        Returns:
            0, the id of "no task"
        """
        entry = self._entries.pop(task_id, None)
        if entry is None:
            return 0
        for child_id in [child.id for child in self._entries.values() if child.parent_id == task_id]:
            self.remove(child_id)
        self._notify(entry, removed=True)
        return 0

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """
        Register a listener for progress changes.

        Returns:
            Function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, entry: ProgressEntry, removed: bool = False) -> None:
        if not self._listeners:
            return
        update = ProgressUpdate(
            id=entry.id,
            name=entry.name,
            description=entry.description,
            parent_id=entry.parent_id,
            current_step=entry.current_step,
            total_steps=entry.total_steps,
            fraction=entry.fraction,
            removed=removed,
        )
        for listener in list(self._listeners):
            try:
                listener(update)
            except Exception as e:
                logger.warning(f"Progress listener failed: {e}")


# Global registry instance
_progress_registry: Optional[ProgressRegistry] = None


def get_progress_registry() -> ProgressRegistry:
    """Get the process-wide default progress registry."""
    global _progress_registry
    if _progress_registry is None:
        _progress_registry = ProgressRegistry()
    return _progress_registry


class TaskToken:
    """
    Token used to report progress from and cancel an operation.

    The base step lets nested steps report their local step numbers, e.g. a
    per-artifact loop calls `advance()` after each artifact and the steps of
    the next artifact continue from there.
    """

    def __init__(
        self,
        task_id: int,
        registry: ProgressRegistry,
        cancellation: Optional[CancellationToken] = None,
        parent_id: int = 0,
        base_step: int = 0,
        context: Optional[Any] = None,
    ):
        self.task_id = task_id
        self.registry = registry
        self.cancellation = cancellation if cancellation is not None else CancellationToken.none()
        # Id of the root task, nesting is limited to one level.
        self.parent_id = parent_id
        self.base_step = base_step
        # Label added to log messages, e.g. the name of the configuration.
        self.context = context

    @classmethod
    def start(
        cls,
        name: str,
        cancellation: Optional[CancellationToken] = None,
        description: Optional[str] = None,
        registry: Optional[ProgressRegistry] = None,
        context: Optional[Any] = None,
    ) -> "TaskToken":
        """Start a new root task."""
        registry = registry if registry is not None else get_progress_registry()
        task_id = registry.start(name, description)
        return cls(task_id, registry, cancellation=cancellation, context=context)

    def start_child(self, name: str, description: Optional[str] = None) -> "TaskToken":
        """Start a child task sharing this token's cancellation."""
        parent = self.parent_id if self.parent_id > 0 else self.task_id
        task_id = self.registry.start(name, description, parent_id=parent)
        return TaskToken(
            task_id,
            self.registry,
            cancellation=self.cancellation,
            parent_id=parent,
            context=self.context,
        )

    @property
    def name(self) -> str:
        return self.registry.get_name(self.task_id)

    @property
    def is_cancellation_requested(self) -> bool:
        return self.cancellation.is_cancellation_requested

    def report(self, step: int, total: Optional[int] = None, description: Optional[str] = None) -> None:
        """
        Report discrete progress.

        Args:
            step: Current step, relative to the base step
            total: Total steps, only needs to be given the first time
            description: Optional new description, also logged
        """
        if total is None:
            total = self.registry.get_total_steps(self.task_id)
        self.registry.report_step(self.task_id, self.base_step + step, total, description)
        if description:
            logger.info(f"{self._prefix()}{description} ({step}/{total})")

    def report_progress(self, fraction: float, description: Optional[str] = None) -> None:
        """Report continuous progress between 0 and 1."""
        self.registry.report_fraction(self.task_id, fraction, description)
        if description:
            logger.info(f"{self._prefix()}{description}")

    def advance(self, steps: int = 1) -> None:
        """Move the base step forward."""
        self.base_step += steps

    def remove(self) -> None:
        """Remove the progress task."""
        self.task_id = self.registry.remove(self.task_id)

    def throw_if_cancellation_requested(self, source: Optional[str] = None) -> None:
        self.cancellation.throw_if_cancellation_requested(source)

    async def sleep(self, seconds: float) -> None:
        """Sleep, aborting with `OperationCancelledError` on cancellation."""
        await self.cancellation.sleep(seconds)

    def _prefix(self) -> str:
        if self.context:
            return f"[{self.context}] {self.name}: "
        return f"{self.name}: "
