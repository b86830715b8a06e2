"""
Execution contexts for callbacks and timed re-attempts.

The resolver never blocks the caller: clipboard polls and result delivery
are posted onto a Scheduler, the engine's notion of the "main" context.
"""

import asyncio
import heapq
import itertools
import threading
import time
from typing import Callable, List, Optional, Tuple

from .logger import StructuredLogger, get_logger

Task = Callable[[], None]


class Scheduler:
    """Runs tasks on one logical context, immediately or after a delay."""

    def post(self, task: Task) -> None:
        self.call_later(0.0, task)

    def call_later(self, delay: float, task: Task) -> None:
        raise NotImplementedError

    def now(self) -> float:
        return time.monotonic()


class ThreadScheduler(Scheduler):
    """
    Single dedicated thread draining a timer heap.

    The thread starts on first use and is a daemon, so an idle scheduler
    never keeps the interpreter alive.
    """

    def __init__(self, name: str = "sddl-main", logger: Optional[StructuredLogger] = None):
        self.name = name
        self._log = logger or get_logger()
        self._cond = threading.Condition()
        self._queue: List[Tuple[float, int, Task]] = []
        self._seq = itertools.count()
        self._thread: Optional[threading.Thread] = None
        self._stopped = False

    def call_later(self, delay: float, task: Task) -> None:
        with self._cond:
            if self._stopped:
                raise RuntimeError(f"Scheduler {self.name} is shut down")
            heapq.heappush(self._queue, (self.now() + max(0.0, delay), next(self._seq), task))
            if self._thread is None:
                self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
                self._thread.start()
            self._cond.notify()

    def is_current(self) -> bool:
        """True when called from the scheduler's own thread."""
        return self._thread is not None and threading.current_thread() is self._thread

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        """Stop accepting tasks; pending tasks still run before the thread exits."""
        with self._cond:
            self._stopped = True
            self._cond.notify()
            thread = self._thread
        if wait and thread is not None and not self.is_current():
            thread.join(timeout)

    def _next_task(self) -> Optional[Task]:
        with self._cond:
            while True:
                if self._queue:
                    due, _, task = self._queue[0]
                    remaining = due - self.now()
                    if remaining <= 0:
                        heapq.heappop(self._queue)
                        return task
                    self._cond.wait(remaining)
                elif self._stopped:
                    return None
                else:
                    self._cond.wait()

    def _run(self) -> None:
        while True:
            task = self._next_task()
            if task is None:
                return
            try:
                task()
            except Exception as e:
                # Keep draining after a failing task
                self._log.error("Scheduled task raised", scheduler=self.name, error=repr(e))


class AsyncioScheduler(Scheduler):
    """Delivers onto a running asyncio event loop; safe to call from any thread."""

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self.loop = loop

    def post(self, task: Task) -> None:
        self.loop.call_soon_threadsafe(task)

    def call_later(self, delay: float, task: Task) -> None:
        if delay <= 0:
            self.post(task)
            return
        self.loop.call_soon_threadsafe(self.loop.call_later, delay, task)

    def now(self) -> float:
        return self.loop.time()
