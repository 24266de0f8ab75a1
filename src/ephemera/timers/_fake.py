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

"""Deterministic timer scheduler driven by :class:`~ephemera.clock.FakeClock`."""

from __future__ import annotations

import heapq
import itertools
import threading
from collections.abc import Callable
from dataclasses import dataclass, field

from ..clock import FakeClock


@dataclass
class FakeTimerHandle:
    """Timer handle whose firing is controlled by :class:`FakeTimerScheduler`.

    Firing happens in two steps so tests can reproduce the race between a
    timer that already fired and a concurrent cancellation: :meth:`claim`
    marks the timer as fired (after which :meth:`cancel` returns False) and
    :meth:`run` invokes the callback.
    """

    callback: Callable[[], None]
    due: float
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _fired: bool = field(default=False, repr=False)
    _cancelled: bool = field(default=False, repr=False)

    def cancel(self) -> bool:
        """Cancel the timer if it has not been claimed yet."""
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

    def run(self) -> None:
        """Invoke the callback in the calling thread."""
        self.callback()

    @property
    def fired(self) -> bool:
        with self._lock:
            return self._fired

    @property
    def cancelled(self) -> bool:
        with self._lock:
            return self._cancelled


@dataclass
class FakeTimerScheduler:
    """Test scheduler that fires callbacks only when time is advanced.

    Callbacks run synchronously in the thread calling :meth:`advance`, in due
    order, with the clock set to each timer's due time while it runs.

    Example::

        scheduler = FakeTimerScheduler()
        fired = []
        scheduler.call_later(10, lambda: fired.append("a"))

        scheduler.advance(9.9)
        assert fired == []
        scheduler.advance(0.1)
        assert fired == ["a"]
    """

    clock: FakeClock = field(default_factory=FakeClock)
    _heap: list[tuple[float, int, FakeTimerHandle]] = field(
        default_factory=list, repr=False
    )
    _sequence: itertools.count[int] = field(
        default_factory=itertools.count, repr=False
    )
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimerHandle:
        """Register ``callback`` to fire ``delay`` seconds from the fake now."""
        with self._lock:
            handle = FakeTimerHandle(
                callback=callback, due=self.clock.monotonic() + max(delay, 0.0)
            )
            heapq.heappush(self._heap, (handle.due, next(self._sequence), handle))
            return handle

    def claim_next(self, *, until: float | None = None) -> FakeTimerHandle | None:
        """Claim the earliest live timer without running its callback.

        The clock moves forward to the timer's due time. When ``until`` is
        given, timers due after it are left pending.

        Returns:
            The claimed handle, or None when nothing (eligible) is pending.
        """
        while True:
            with self._lock:
                if not self._heap:
                    return None
                due, _, handle = self._heap[0]
                if until is not None and due > until:
                    return None
                _ = heapq.heappop(self._heap)
            if not handle.claim():
                continue
            if due > self.clock.monotonic():
                self.clock.set_monotonic(due)
            return handle

    def advance(self, seconds: float) -> int:
        """Advance the clock, running every timer that falls due.

        Returns:
            Number of callbacks run.

        Raises:
            ValueError: If seconds is negative.
        """
        if seconds < 0:
            msg = "Cannot advance time by negative seconds"
            raise ValueError(msg)
        target = self.clock.monotonic() + seconds
        ran = 0
        while (handle := self.claim_next(until=target)) is not None:
            handle.run()
            ran += 1
        if target > self.clock.monotonic():
            self.clock.set_monotonic(target)
        return ran

    def run_due(self) -> int:
        """Run timers already due without moving the clock."""
        return self.advance(0)

    def pending_count(self) -> int:
        """Number of timers neither cancelled nor fired."""
        with self._lock:
            return sum(1 for _, _, handle in self._heap if not handle.cancelled)


__all__ = ["FakeTimerHandle", "FakeTimerScheduler"]
