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

"""Core protocols for deferred actions."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable


@runtime_checkable
class TimerHandle(Protocol):
    """Handle for a callback scheduled with :meth:`TimerScheduler.call_later`."""

    def cancel(self) -> bool:
        """Attempt to stop the callback from running.

        Returns:
            True if the callback is guaranteed not to run. False if it is too
            late: the timer already fired and the callback is running, about
            to run, or finished. Callers racing a fired timer must make the
            callback itself tolerate running after cancellation.
        """
        ...


@runtime_checkable
class TimerScheduler(Protocol):
    """Protocol for scheduling one-shot deferred callbacks.

    Production implementations run callbacks on background threads.
    Test implementations run them when a fake clock is advanced.
    """

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Schedule ``callback`` to run once after ``delay`` seconds.

        Args:
            delay: Seconds to wait. Non-positive delays fire as soon as possible.
            callback: Zero-argument callable. Must not assume it runs on the
                scheduling thread.

        Returns:
            A handle that can cancel the callback.
        """
        ...


__all__ = ["TimerHandle", "TimerScheduler"]
