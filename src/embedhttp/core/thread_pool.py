"""
=============================================================================
WORKER POOL
=============================================================================

A fixed number of long-lived worker threads pull tasks from one shared
FIFO queue. For the HTTP server a task is "serve this connection until
it closes".

    ┌──────────┐  submit()   ┌───────────────────────────┐
    │ Acceptor │ ──────────► │  queue.Queue [t4][t3][t2] │
    └──────────┘             └─────────────┬─────────────┘
                                           │ get() (FIFO)
                     ┌─────────────────────┼─────────────────────┐
                     ▼                     ▼                     ▼
               ┌──────────┐          ┌──────────┐          ┌──────────┐
               │ Worker-0 │          │ Worker-1 │          │ Worker-2 │
               │ (t1)     │          │ (idle)   │          │ (idle)   │
               └──────────┘          └──────────┘          └──────────┘

queue.Queue does the locking. A worker blocks in get() while the queue
is empty and wakes as soon as a task is put.

=============================================================================
SHUTDOWN: POISON PILLS
=============================================================================

    1. mark the pool as stopping       submit() now returns False
    2. drain the queue                 queued tasks are DROPPED, not run,
                                       and handed back to the caller
    3. put one None per worker         None = "exit your loop"
    4. join the workers                each finishes its current task first

Dropping queued connections keeps shutdown time bounded by the longest
in-flight request instead of the length of the backlog.

=============================================================================
QUEUE BOUND
=============================================================================

max_queue_size=0 (the default) means unbounded, exactly like
queue.Queue(maxsize=0). With a positive bound, submit() returns False
when the queue is full and the caller decides what to do (the server
answers 503).

=============================================================================
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    """Worker thread states, used for monitoring."""

    IDLE = "idle"        # Waiting for a task
    BUSY = "busy"        # Running a task
    STOPPED = "stopped"  # Thread exited


@dataclass
class Task:
    """
    A deferred function call.

    Attributes:
        func: The function to execute.
        args: Positional arguments.
        kwargs: Keyword arguments.
        submitted_at: When the task was queued (for wait-time logging).
    """

    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.time)

    def __call__(self) -> Any:
        return self.func(*self.args, **self.kwargs)


class Worker(threading.Thread):
    """
    Worker thread that runs tasks from the pool's queue.

        ┌──────────────────────────────────────────────────────────┐
        │  loop:                                                   │
        │    task = queue.get()          (blocks)                  │
        │    if task is None: exit       (poison pill)             │
        │    try:   task()                                         │
        │    except Exception: log it, keep going                  │
        └──────────────────────────────────────────────────────────┘

    A task that raises must never take the worker down with it. For the
    HTTP server that is a handler fault: the connection is already
    closed by its context manager, and this worker goes back to serving
    other connections.
    """

    def __init__(self, task_queue: "queue.Queue[Optional[Task]]", worker_id: int):
        # daemon=True: a forgotten pool never keeps the process alive
        super().__init__(name=f"Worker-{worker_id}", daemon=True)

        self.task_queue = task_queue
        self.worker_id = worker_id
        self.state = WorkerState.IDLE

        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while True:
            task = self.task_queue.get()
            if task is None:
                break
            self._execute_task(task)

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        self.state = WorkerState.BUSY
        start_time = time.time()

        try:
            task()
            self.tasks_completed += 1
            logger.debug(
                f"Worker {self.worker_id} completed task in {time.time() - start_time:.3f}s "
                f"(queued {start_time - task.submitted_at:.3f}s)"
            )
        except Exception as e:
            self.tasks_failed += 1
            logger.exception(
                f"Worker {self.worker_id} task failed after {time.time() - start_time:.3f}s: {e}"
            )
        finally:
            self.state = WorkerState.IDLE


class ThreadPool:
    """
    Fixed-size pool of worker threads over an unbounded (or optionally
    bounded) FIFO queue.

        pool = ThreadPool(num_workers=4)
        pool.start()
        pool.submit(handle_connection, args=(conn,))
        ...
        pool.shutdown()

    Args:
        num_workers: Number of worker threads, created by start().
        max_queue_size: 0 for unbounded, otherwise the most tasks that
                        may wait at once.
    """

    def __init__(self, num_workers: int = 4, max_queue_size: int = 0):
        if num_workers < 1:
            raise ValueError("num_workers must be >= 1")
        if max_queue_size < 0:
            raise ValueError("max_queue_size must be >= 0")

        self.num_workers = num_workers
        self.max_queue_size = max_queue_size

        self._task_queue: "queue.Queue[Optional[Task]]" = queue.Queue(maxsize=max_queue_size)
        self._workers: List[Worker] = []

        # Orders submit() against shutdown() so nothing is queued after the drain
        self._lock = threading.Lock()
        self._started = False
        self._stopping = False

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self):
        """Create and start the worker threads. Idempotent."""
        with self._lock:
            if self._started:
                return
            if self._stopping:
                raise RuntimeError("Thread pool has been shut down")
            self._started = True

        logger.info(f"Starting thread pool with {self.num_workers} workers")
        for worker_id in range(self.num_workers):
            worker = Worker(self._task_queue, worker_id)
            self._workers.append(worker)
            worker.start()

    def shutdown(self, timeout: Optional[float] = None) -> List[Task]:
        """
        Stop the pool.

        Workers finish the task they are running. Tasks still waiting in
        the queue are discarded.

        Args:
            timeout: Max seconds to wait for EACH worker. None waits as
                     long as the slowest in-flight task takes.

        Returns:
            The tasks that were still queued, so the caller can release
            whatever they hold. Empty on repeated calls.
        """
        with self._lock:
            if self._stopping:
                return []
            self._stopping = True

        # ─────────────────────────────────────────────────────────────────
        # DRAIN
        # ─────────────────────────────────────────────────────────────────
        dropped: List[Task] = []
        while True:
            try:
                task = self._task_queue.get_nowait()
            except queue.Empty:
                break
            if task is not None:
                dropped.append(task)

        if dropped:
            logger.warning(f"Thread pool shutdown dropped {len(dropped)} queued tasks")

        # ─────────────────────────────────────────────────────────────────
        # POISON PILLS
        # ─────────────────────────────────────────────────────────────────
        # put() may block on a bounded queue until a busy worker frees a
        # slot by taking a pill, which it does right after its task.
        for _ in self._workers:
            self._task_queue.put(None)

        current = threading.current_thread()
        for worker in self._workers:
            if worker is not current:
                worker.join(timeout)

        logger.info("Thread pool shutdown complete")
        return dropped

    # =========================================================================
    # TASKS
    # =========================================================================

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
    ) -> bool:
        """
        Queue a function call for a worker.

        Returns:
            True if queued. False if the pool is shutting down (silently
            ignored) or the bounded queue is full.

        Raises:
            RuntimeError: If start() was never called.
        """
        task = Task(func=func, args=args, kwargs=kwargs or {})

        with self._lock:
            if self._stopping:
                return False
            if not self._started:
                raise RuntimeError("Thread pool not started")

            try:
                self._task_queue.put_nowait(task)
            except queue.Full:
                return False

        return True

    # =========================================================================
    # MONITORING
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._started and not self._stopping

    @property
    def queue_size(self) -> int:
        return self._task_queue.qsize()

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def stats(self) -> dict:
        """Worker and task counts, for logging and tests."""
        return {
            "workers": {
                "total": len(self._workers),
                "alive": sum(1 for w in self._workers if w.is_alive()),
                "busy": self.busy_workers,
            },
            "tasks": {
                "queued": self.queue_size,
                "completed": sum(w.tasks_completed for w in self._workers),
                "failed": sum(w.tasks_failed for w in self._workers),
            },
        }
