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

"""Controllable time abstractions for testable time-dependent code.

Cache expiry and queue visibility timeouts are measured on a monotonic clock.
Production timers read :func:`time.monotonic` directly; tests inject
:class:`FakeClock` through :class:`ephemera.timers.FakeTimerScheduler` so that
timers fire deterministically without real delays.

Example (testing)::

    from ephemera.clock import FakeClock

    clock = FakeClock()
    start = clock.monotonic()
    clock.advance(10)  # No real delay
    assert clock.monotonic() - start == 10
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import timedelta


@dataclass
class FakeClock:
    """Controllable clock for deterministic testing.

    Thread-safety:
        All operations are thread-safe.
    """

    _monotonic: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def monotonic(self) -> float:
        """Return current monotonic time."""
        with self._lock:
            return self._monotonic

    def advance(self, seconds: float) -> None:
        """Advance the clock by the given duration.

        Raises:
            ValueError: If seconds is negative.
        """
        if seconds < 0:
            msg = "Cannot advance time by negative seconds"
            raise ValueError(msg)
        with self._lock:
            self._monotonic += seconds

    def set_monotonic(self, value: float) -> None:
        """Set monotonic time to an absolute value.

        Raises:
            ValueError: If value would move the clock backwards.
        """
        with self._lock:
            if value < self._monotonic:
                msg = "Monotonic time cannot go backwards"
                raise ValueError(msg)
            self._monotonic = value


def to_seconds(duration: float | timedelta) -> float:
    """Normalize a duration given as seconds or :class:`timedelta` to seconds."""

    if isinstance(duration, timedelta):
        return duration.total_seconds()
    if isinstance(duration, bool) or not isinstance(duration, int | float):
        msg = f"Duration must be seconds or a timedelta, got {type(duration).__name__}"
        raise TypeError(msg)
    return float(duration)


__all__ = [
    "FakeClock",
    "to_seconds",
]
