"""
PIXEL RELAY - Task Scheduler

Runs tasks on a worker thread pool and hands their results back on the
control thread, the thread running the Qt event loop.

Submission and delivery are message based: submit() queues the task's
compute phase on the pool; when it finishes, the worker posts a completion
message (ticket, output, error) through a queued signal. The control thread
picks it up from its event loop, runs the task's resolve phase and settles
the PendingHandle. Nothing a host can observe is built on a worker thread.

A QCoreApplication (or QApplication) must exist, and submit() must be called
from its thread.
"""

import itertools
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial
from typing import Any, Callable, Dict, Optional, Tuple

from PySide6.QtCore import QEventLoop, QObject, Qt, QTimer, Signal

from pixels import ImageTaskError, TaskTimeoutError
from services.memory_manager import MemoryManager
from workers.image_tasks import Task


class PendingHandle(QObject):
    """
    Deferred result of a submitted task.

    Settles exactly once, on the control thread: either resolved with the
    value built by the task's resolve phase, or rejected with an
    ImageTaskError whose str() is the rejection reason.
    """

    resolved = Signal(object)   # value
    rejected = Signal(object)   # ImageTaskError
    settled = Signal()

    PENDING = 'pending'
    RESOLVED = 'resolved'
    REJECTED = 'rejected'

    def __init__(self, task_name: str, parent: QObject = None):
        super().__init__(parent)
        self._task_name = task_name
        self._state = self.PENDING
        self._value: Any = None
        self._error: Optional[ImageTaskError] = None

    @property
    def task_name(self) -> str:
        return self._task_name

    @property
    def state(self) -> str:
        return self._state

    @property
    def is_pending(self) -> bool:
        return self._state == self.PENDING

    @property
    def is_resolved(self) -> bool:
        return self._state == self.RESOLVED

    @property
    def is_rejected(self) -> bool:
        return self._state == self.REJECTED

    @property
    def value(self) -> Any:
        """Resolved value, None until resolved."""
        return self._value

    @property
    def error(self) -> Optional[ImageTaskError]:
        """Rejection error, None unless rejected."""
        return self._error

    @property
    def reason(self) -> Optional[str]:
        """Short rejection reason."""
        return str(self._error) if self._error is not None else None

    def then(self, on_resolved: Callable[[Any], None],
             on_rejected: Optional[Callable[[ImageTaskError], None]] = None) -> 'PendingHandle':
        """
        Register callbacks. Called right away if the handle already settled,
        otherwise when it settles.
        """
        if self._state == self.RESOLVED:
            on_resolved(self._value)
        elif self._state == self.REJECTED:
            if on_rejected is not None:
                on_rejected(self._error)
        else:
            self.resolved.connect(on_resolved)
            if on_rejected is not None:
                self.rejected.connect(on_rejected)
        return self

    def result(self) -> Any:
        """Return the value, raise the rejection error, or RuntimeError if pending."""
        if self._state == self.RESOLVED:
            return self._value
        if self._state == self.REJECTED:
            raise self._error
        raise RuntimeError(f"{self._task_name} has not settled yet")

    def wait(self, timeout_ms: Optional[int] = None) -> Any:
        """
        Process events until the handle settles, then behave like result().

        Runs a nested event loop, so the control thread keeps handling events
        (including other tasks' completions) while waiting.

        Raises:
            TimeoutError: the handle is still pending after timeout_ms.
        """
        if self.is_pending:
            loop = QEventLoop()
            self.settled.connect(loop.quit)
            timer = None
            if timeout_ms is not None:
                timer = QTimer()
                timer.setSingleShot(True)
                timer.timeout.connect(loop.quit)
                timer.start(timeout_ms)
            loop.exec()
            self.settled.disconnect(loop.quit)
            if timer is not None:
                timer.stop()

        if self.is_pending:
            raise TimeoutError(f"{self._task_name} still pending after {timeout_ms}ms")
        return self.result()

    def _resolve(self, value: Any):
        self._state = self.RESOLVED
        self._value = value
        self.resolved.emit(value)
        self.settled.emit()

    def _reject(self, error: ImageTaskError):
        self._state = self.REJECTED
        self._error = error
        self.rejected.emit(error)
        self.settled.emit()


class TaskScheduler(QObject):
    """
    Bridges the control thread and a ThreadPoolExecutor.

    Every task's compute phase runs once on one worker; tasks run
    concurrently, so completion order is not submission order. There is no
    cancellation. With task_timeout_ms set, a task that has not settled in
    time is rejected with TaskTimeoutError; its worker still runs to the end
    and the late result is dropped.
    """

    # Completion message posted by workers: ticket, output, error
    _taskFinished = Signal(object, object, object)

    # Public signals for host integration
    taskSettled = Signal(str, bool)     # task name, succeeded
    activeCountChanged = Signal(int)    # submitted but not yet settled

    def __init__(self, settings: Optional[Dict[str, Any]] = None, parent: QObject = None):
        """
        Initialize the scheduler.

        Args:
            settings: Dict as returned by settings.load_settings():
                - max_workers: Pool size (default: memory manager's choice)
                - task_timeout_ms: Execution bound per task (default: none)
                - thread_name_prefix: Worker thread name prefix
        """
        super().__init__(parent)
        settings = settings or {}
        self._memory_manager = MemoryManager()

        self._worker_count = settings.get('max_workers') or self._memory_manager.get_optimal_workers()
        self._task_timeout_ms = settings.get('task_timeout_ms')
        self._executor = ThreadPoolExecutor(
            max_workers=self._worker_count,
            thread_name_prefix=settings.get('thread_name_prefix', 'pixel-relay'),
        )

        self._tickets = itertools.count(1)
        self._pending: Dict[int, Tuple[Task, PendingHandle]] = {}
        self._shut_down = False

        # Queued: the slot always runs on this object's (the control) thread
        self._taskFinished.connect(self._on_task_finished, Qt.QueuedConnection)

    def submit(self, task: Task) -> PendingHandle:
        """
        Queue a task and return its handle immediately.

        A saturated pool queues the task rather than refusing it.
        """
        if self._shut_down:
            raise RuntimeError("TaskScheduler has been shut down")

        ticket = next(self._tickets)
        handle = PendingHandle(task.name)
        self._pending[ticket] = (task, handle)
        self.activeCountChanged.emit(len(self._pending))

        future = self._executor.submit(task.compute)
        future.add_done_callback(partial(self._post_completion, ticket))

        if self._task_timeout_ms:
            QTimer.singleShot(self._task_timeout_ms, partial(self._on_task_timeout, ticket))

        return handle

    def _post_completion(self, ticket: int, future: Future):
        """Post the outcome to the control thread (runs on the worker thread)."""
        error = future.exception()
        output = future.result() if error is None else None
        self._taskFinished.emit(ticket, output, error)

    def _on_task_finished(self, ticket: int, output: Any, error: Optional[BaseException]):
        """Settle a handle with a worker's outcome (runs on the control thread)."""
        entry = self._pending.pop(ticket, None)
        if entry is None:
            print(f"[TaskScheduler] Discarding late result of task #{ticket}")
            return

        task, handle = entry
        if error is None:
            try:
                value = task.resolve(output)
            except Exception as e:
                error = e

        if error is None:
            handle._resolve(value)
        else:
            handle._reject(self._as_task_error(task, error))

        self.taskSettled.emit(task.name, error is None)
        self.activeCountChanged.emit(len(self._pending))

    def _on_task_timeout(self, ticket: int):
        entry = self._pending.pop(ticket, None)
        if entry is None:
            return

        task, handle = entry
        handle._reject(TaskTimeoutError(f"{task.name} timed out after {self._task_timeout_ms}ms"))
        self.taskSettled.emit(task.name, False)
        self.activeCountChanged.emit(len(self._pending))

    @staticmethod
    def _as_task_error(task: Task, error: BaseException) -> ImageTaskError:
        """Wrap anything outside the error taxonomy so the host sees one kind of failure."""
        if isinstance(error, ImageTaskError):
            return error
        print(f"[TaskScheduler] Unexpected error in {task.name}: {error!r}")
        wrapped = ImageTaskError(f"Unexpected error: {error}")
        wrapped.__cause__ = error
        return wrapped

    def shutdown(self, wait: bool = True):
        """Stop accepting tasks and shut the pool down.

        Tasks already submitted still run; their handles settle once the
        event loop processes the completions.
        """
        self._shut_down = True
        self._executor.shutdown(wait=wait)

    @property
    def pending_count(self) -> int:
        """Number of tasks submitted but not yet settled."""
        return len(self._pending)

    @property
    def worker_count(self) -> int:
        return self._worker_count

    @property
    def task_timeout_ms(self) -> Optional[int]:
        return self._task_timeout_ms

    @property
    def is_running(self) -> bool:
        """Check if any task is still in flight."""
        return bool(self._pending)

    def get_resource_summary(self) -> Dict[str, Any]:
        """Get resource summary plus the pool configuration for display."""
        summary = self._memory_manager.get_resource_summary()
        summary['worker_count'] = self._worker_count
        summary['task_timeout_ms'] = self._task_timeout_ms
        return summary
