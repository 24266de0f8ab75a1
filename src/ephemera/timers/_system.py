# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Thread-backed timer scheduler."""

from __future__ import annotations

import heapq
import itertools
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from ..logging import StructuredLogger, get_logger

logger: StructuredLogger = get_logger(__name__, context={"component": "timers"})


@dataclass
class SystemTimerHandle:
    """Timer registered with a :class:`SystemTimerScheduler`.

    :meth:`cancel` reports whether the callback was actually prevented from
    running.
    """

    callback: Callable[[], None]
    due: float
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _fired: bool = field(default=False, repr=False)
    _cancelled: bool = field(default=False, repr=False)

    def cancel(self) -> bool:
        """Cancel the timer if it has not fired yet."""
        with self._lock:
            if self._fired:
                return False
            self._cancelled = True
            return True

    def claim(self) -> bool:
        """Mark the timer as fired. Returns False if it was cancelled first."""
        with self._lock:
            if self._cancelled:
                return False
            self._fired = True
            return True

    @property
    def fired(self) -> bool:
        """Return True once the timer fell due and its callback was claimed."""
        with self._lock:
            return self._fired

    @property
    def cancelled(self) -> bool:
        """Return True if the timer was cancelled before firing."""
        with self._lock:
            return self._cancelled


@dataclass(eq=False)
class SystemTimerScheduler:
    """Production scheduler: one daemon worker thread draining a timer heap.

    The worker starts lazily on the first :meth:`call_later` and runs
    callbacks one at a time in due order, so a slow callback delays the
    timers behind it. Any number of pending timers share the one thread.

    Example::

        scheduler = SystemTimerScheduler()
        handle = scheduler.call_later(0.5, lambda: print("fired"))
        handle.cancel()  # True: the callback will never run
    """

    thread_name: str = "ephemera-timers"
    _heap: list[tuple[float, int, SystemTimerHandle]] = field(
        default_factory=list, repr=False
    )
    _sequence: itertools.count[int] = field(
        default_factory=itertools.count, repr=False
    )
    _condition: threading.Condition = field(
        default_factory=threading.Condition, repr=False
    )
    _worker: threading.Thread | None = field(default=None, repr=False)
    _generation: int = field(default=0, repr=False)

    def call_later(
        self, delay: float, callback: Callable[[], None]
    ) -> SystemTimerHandle:
        """Run ``callback`` on the worker thread after ``delay`` seconds.

        Raises:
            RuntimeError: The worker thread could not be started. Nothing is
                scheduled in that case.
        """
        handle = SystemTimerHandle(
            callback=callback, due=time.monotonic() + max(delay, 0.0)
        )
        with self._condition:
            self._ensure_worker()
            heapq.heappush(self._heap, (handle.due, next(self._sequence), handle))
            self._condition.notify()
        return handle

    def pending_count(self) -> int:
        """Number of timers neither cancelled nor fired."""
        with self._condition:
            return sum(1 for _, _, handle in self._heap if not handle.cancelled)

    def shutdown(self, timeout: float = 5.0) -> bool:
        """Cancel every pending timer and stop the worker thread.

        A later :meth:`call_later` starts a fresh worker.

        Returns:
            True if the worker finished within ``timeout``.
        """
        with self._condition:
            for _, _, handle in self._heap:
                _ = handle.cancel()
            self._heap.clear()
            self._generation += 1
            self._condition.notify_all()
            worker = self._worker
            self._worker = None

        if worker is None:
            return True
        if worker is not threading.current_thread():
            worker.join(timeout=timeout)
        return not worker.is_alive()

    @property
    def worker(self) -> threading.Thread | None:
        """The worker thread, or None before the first timer."""
        with self._condition:
            return self._worker

    def _ensure_worker(self) -> None:
        # Caller holds _condition.
        if self._worker is not None and self._worker.is_alive():
            return
        worker = threading.Thread(
            target=self._run,
            args=(self._generation,),
            name=self.thread_name,
            daemon=True,
        )
        worker.start()
        self._worker = worker

    def _next_due(self, generation: int) -> SystemTimerHandle | None:
        # Caller holds _condition. Blocks until a timer is due or shutdown.
        while generation == self._generation:
            while self._heap and self._heap[0][2].cancelled:
                _ = heapq.heappop(self._heap)
            if not self._heap:
                _ = self._condition.wait()
                continue
            remaining = self._heap[0][0] - time.monotonic()
            if remaining <= 0:
                return heapq.heappop(self._heap)[2]
            _ = self._condition.wait(timeout=remaining)
        return None

    def _run(self, generation: int) -> None:
        while True:
            with self._condition:
                handle = self._next_due(generation)
            if handle is None:
                return
            if not handle.claim():
                continue
            try:
                handle.callback()
            except Exception:
                logger.exception(
                    "Timer callback raised.",
                    event="timers.callback_failed",
                    context={"timer": self.thread_name},
                )


__all__ = ["SystemTimerHandle", "SystemTimerScheduler"]
