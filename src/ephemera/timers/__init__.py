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

"""Injectable deferred-action scheduling.

Cache expiry and queue redelivery are one-shot callbacks scheduled through a
:class:`TimerScheduler`. Production code uses :data:`SYSTEM_TIMER_SCHEDULER`
(one daemon worker thread shared by all pending timers); tests inject
:class:`FakeTimerScheduler` and move time forward explicitly.

Example (production)::

    from ephemera.timers import SYSTEM_TIMER_SCHEDULER

    handle = SYSTEM_TIMER_SCHEDULER.call_later(5.0, refresh)
    if not handle.cancel():
        ...  # too late, refresh() is running or done

Example (testing)::

    from ephemera.timers import FakeTimerScheduler

    scheduler = FakeTimerScheduler()
    scheduler.call_later(5.0, refresh)
    scheduler.advance(5.0)  # refresh() runs here, synchronously
"""

from __future__ import annotations

from typing import Final

from ._fake import FakeTimerHandle, FakeTimerScheduler
from ._system import SystemTimerHandle, SystemTimerScheduler
from ._types import TimerHandle, TimerScheduler

SYSTEM_TIMER_SCHEDULER: Final[TimerScheduler] = SystemTimerScheduler()
"""Default thread-backed scheduler instance."""

__all__ = [
    "SYSTEM_TIMER_SCHEDULER",
    "FakeTimerHandle",
    "FakeTimerScheduler",
    "SystemTimerHandle",
    "SystemTimerScheduler",
    "TimerHandle",
    "TimerScheduler",
]
