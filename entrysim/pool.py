"""Generic worker pool with pull-based task distribution.

Workers announce themselves by publishing their own inbox on a shared
registry channel. A single dispatcher thread takes one queued task, waits
for the next idle worker's inbox and hands the task over, so faster workers
pick up more tasks.

    pool = WorkerPool(num_workers=5, buffer=200)
    pool.start()
    for i, item in enumerate(items):
        pool.submit(Task(id=i, data=item, function=work))
    # drain pool.results and pool.errors from other threads, then
    pool.wait()
    pool.stop()

Results and errors arrive in completion order; use ``Result.id`` and
``TaskError.task_id`` to correlate them with submitted tasks. The result and
error channels are bounded: somebody must drain them while tasks run or the
workers block.
"""
from __future__ import annotations

import enum
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Generic, Iterator, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")
V = TypeVar("V")


class ChannelClosed(Exception):
    """Send on a closed channel, or receive on a closed and empty one."""


class PoolClosed(RuntimeError):
    """The pool no longer accepts tasks."""


class TaskError(Exception):
    """A task's function raised; carries the originating task id."""

    def __init__(self, task_id: int, cause: BaseException):
        super().__init__(f"task {task_id} failed: {cause}")
        self.task_id = task_id
        self.cause = cause


class Channel(Generic[V]):
    """Bounded FIFO with close semantics.

    ``put`` blocks while full and raises ChannelClosed once closed. ``get``
    blocks while empty; after close it still returns buffered items and
    raises ChannelClosed only when nothing is left.
    """

    def __init__(self, maxsize: int = 1):
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")
        self.maxsize = maxsize
        self._items: Deque[V] = deque()
        self._closed = False
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._not_full = threading.Condition(self._lock)

    def put(self, item: V) -> None:
        with self._not_full:
            while not self._closed and len(self._items) >= self.maxsize:
                self._not_full.wait()
            if self._closed:
                raise ChannelClosed("send on closed channel")
            self._items.append(item)
            self._not_empty.notify()

    def get(self, timeout: Optional[float] = None) -> V:
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._not_empty:
            while not self._items:
                if self._closed:
                    raise ChannelClosed("receive on closed channel")
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    raise TimeoutError("channel receive timed out")
                self._not_empty.wait(remaining)
            item = self._items.popleft()
            self._not_full.notify()
            return item

    def drain(self) -> List[V]:
        """Remove and return every buffered item without blocking."""
        with self._lock:
            items = list(self._items)
            self._items.clear()
            self._not_full.notify_all()
            return items

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._not_empty.notify_all()
            self._not_full.notify_all()

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __iter__(self) -> Iterator[V]:
        """Receive until the channel is closed and empty."""
        while True:
            try:
                yield self.get()
            except ChannelClosed:
                return


@dataclass(frozen=True)
class Task(Generic[T, R]):
    id: int
    data: T
    function: Callable[[T], R]


@dataclass(frozen=True)
class Result(Generic[R]):
    id: int
    value: R


class WorkerState(enum.Enum):
    REGISTERING = "registering"
    AWAITING = "awaiting"
    EXECUTING = "executing"
    TERMINATED = "terminated"


class PoolState(enum.Enum):
    CREATED = "created"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


@dataclass
class PoolStats:
    submitted: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0

    @property
    def finished(self) -> int:
        return self.completed + self.failed + self.cancelled


class Worker(Generic[T, R]):
    """Executes one task at a time, re-registering after each."""

    def __init__(self, worker_id: int, pool: "WorkerPool[T, R]"):
        self.id = worker_id
        self.inbox: Channel[Task[T, R]] = Channel(1)
        self.state = WorkerState.REGISTERING
        self._pool = pool
        self._thread = threading.Thread(
            target=self._run, name=f"{pool.name}-worker-{worker_id}", daemon=True,
        )

    def start(self) -> None:
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def quit(self) -> None:
        self.inbox.close()

    def _run(self) -> None:
        pool = self._pool
        while True:
            self.state = WorkerState.REGISTERING
            try:
                pool._registry.put(self.inbox)
            except ChannelClosed:
                break
            self.state = WorkerState.AWAITING
            try:
                task = self.inbox.get()
            except ChannelClosed:
                break
            self.state = WorkerState.EXECUTING
            pool._execute(self, task)
        self.state = WorkerState.TERMINATED


class WorkerPool(Generic[T, R]):
    """Fixed-size pool of worker threads fed by a single dispatcher.

    Lifecycle: CREATED → RUNNING (``start``) → DRAINING (``stop`` called)
    → STOPPED (every worker joined, result and error channels closed).
    """

    def __init__(self, num_workers: int = 5, buffer: int = 200,
                 name: str = "pool", slow_task_ms: float = 5000.0):
        if num_workers < 1:
            raise ValueError("num_workers must be >= 1")
        self.name = name
        self.num_workers = num_workers
        self.slow_task_ms = slow_task_ms
        self.state = PoolState.CREATED
        self.stats = PoolStats()

        self.tasks: Channel[Task[T, R]] = Channel(buffer)
        self.results: Channel[Result[R]] = Channel(buffer)
        self.errors: Channel[TaskError] = Channel(buffer)
        self._registry: Channel[Channel[Task[T, R]]] = Channel(num_workers)
        self.workers: List[Worker[T, R]] = [Worker(i, self) for i in range(num_workers)]

        self._quit = threading.Event()
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._stop_lock = threading.Lock()
        self._dispatch_lock = threading.Lock()
        self._dispatcher = threading.Thread(target=self._dispatch, name=f"{name}-dispatcher", daemon=True)

    def start(self) -> "WorkerPool[T, R]":
        if self.state is not PoolState.CREATED:
            raise RuntimeError(f"pool {self.name} cannot start from state {self.state.value}")
        for worker in self.workers:
            worker.start()
        self._dispatcher.start()
        self.state = PoolState.RUNNING
        logger.debug(f"[Pool] {self.name} started with {self.num_workers} workers")
        return self

    def submit(self, task: Task[T, R]) -> None:
        """Queue a task, blocking while the task queue is full."""
        if self.state is not PoolState.RUNNING:
            raise PoolClosed(f"pool {self.name} is {self.state.value}")
        with self._lock:
            self.stats.submitted += 1
        try:
            self.tasks.put(task)
        except ChannelClosed:
            self._finish(cancelled=True)
            raise PoolClosed(f"pool {self.name} stopped while submitting task {task.id}") from None

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until every submitted task has finished. Returns False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._idle:
            while self.stats.finished < self.stats.submitted:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._idle.wait(remaining)
            return True

    def stop(self) -> None:
        """Shut down: no task runs after this begins, in-flight tasks finish.

        Order matters: stop accepting tasks, close the registry and join the
        dispatcher, tell the workers to quit and join them, and only then
        close the result and error channels.
        """
        with self._stop_lock:
            if self.state is PoolState.STOPPED:
                return
            started = self.state is PoolState.RUNNING
            self.state = PoolState.DRAINING
            with self._dispatch_lock:
                self._quit.set()

            self.tasks.close()
            pending = self.tasks.drain()
            for _ in pending:
                self._finish(cancelled=True)
            if pending:
                logger.warning(f"[Pool] {self.name} cancelled {len(pending)} undispatched task(s)")

            self._registry.close()
            if started:
                self._dispatcher.join()
            for worker in self.workers:
                worker.quit()
            if started:
                for worker in self.workers:
                    worker.join()

            self.results.close()
            self.errors.close()
            self.state = PoolState.STOPPED
            logger.debug(
                f"[Pool] {self.name} stopped: {self.stats.completed} completed, "
                f"{self.stats.failed} failed, {self.stats.cancelled} cancelled"
            )

    def __enter__(self) -> "WorkerPool[T, R]":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def _dispatch(self) -> None:
        while True:
            try:
                task = self.tasks.get()
            except ChannelClosed:
                return
            if self._quit.is_set():
                self._finish(cancelled=True)
                continue
            try:
                inbox = self._registry.get()
            except ChannelClosed:
                self._finish(cancelled=True)
                continue
            # The inbox is empty while its worker awaits, so put never blocks here.
            with self._dispatch_lock:
                if self._quit.is_set():
                    dispatched = False
                else:
                    try:
                        inbox.put(task)
                        dispatched = True
                    except ChannelClosed:
                        dispatched = False
            if not dispatched:
                self._finish(cancelled=True)

    def _execute(self, worker: Worker[T, R], task: Task[T, R]) -> None:
        t0 = time.monotonic()
        try:
            value = task.function(task.data)
        except Exception as e:
            logger.debug(f"[Pool] {self.name} worker {worker.id} task {task.id} failed: {e}")
            self.errors.put(TaskError(task.id, e))
            self._finish(failed=True)
            return
        elapsed_ms = (time.monotonic() - t0) * 1000
        if elapsed_ms > self.slow_task_ms:
            logger.warning(f"[Pool] {self.name} task {task.id} took {elapsed_ms:.0f}ms")
        self.results.put(Result(task.id, value))
        self._finish()

    def _finish(self, failed: bool = False, cancelled: bool = False) -> None:
        with self._idle:
            if cancelled:
                self.stats.cancelled += 1
            elif failed:
                self.stats.failed += 1
            else:
                self.stats.completed += 1
            self._idle.notify_all()
