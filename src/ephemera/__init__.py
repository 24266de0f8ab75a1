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

"""In-memory ephemeral state for distributed-worker prototypes.

Two independent primitives, each behind a small protocol so networked
backends can replace them later:

- :mod:`ephemera.cache`: key-value cache with per-key expiry.
- :mod:`ephemera.queue`: FIFO queue with visibility timeouts.
"""

from __future__ import annotations

from . import cache, clock, errors, queue, timers
from .cache import Cache, LocalCache
from .errors import EphemeraError
from .queue import LocalQueue, NoMessagesError, Queue, ReceivedMessage

__all__ = [
    "Cache",
    "EphemeraError",
    "LocalCache",
    "LocalQueue",
    "NoMessagesError",
    "Queue",
    "ReceivedMessage",
    "cache",
    "clock",
    "errors",
    "queue",
    "timers",
]
