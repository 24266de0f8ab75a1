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

"""Thread-safe in-memory queue implementation."""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import timedelta
from functools import partial
from types import TracebackType
from typing import Self
from uuid import uuid4

from ..clock import to_seconds
from ..logging import StructuredLogger, get_logger
from ..timers import SYSTEM_TIMER_SCHEDULER, TimerHandle, TimerScheduler
from ._errors import NoMessagesError
from ._types import ReceivedMessage


def _new_message_id() -> str:
    return str(uuid4())


@dataclass(slots=True, eq=False)
class _Lease:
    """Redelivery registration of an in-flight message."""

    message_id: str
    handle: TimerHandle | None = None


@dataclass(slots=True)
class LocalQueue:
    """Thread-safe in-memory queue with visibility timeouts.

    Messages are stored in memory and lost on process exit. No guarantees
    are made about performance or efficiency.

    Characteristics:
    - FIFO delivery; timed-out messages return to the head, not the tail
    - Message ids are reused across redeliveries
    - Three locks, always nested as visible -> payloads -> leases

    Example::

        queue: Queue = LocalQueue(name="jobs")
        queue.send_message(b"resize:42")
        message = queue.receive_message(visibility_timeout=30)
        process(message.payload)
        queue.delete_message(message.id)
    """

    name: str = "default"
    """Queue name bound into log records."""

    scheduler: TimerScheduler = field(default=SYSTEM_TIMER_SCHEDULER)
    """Scheduler running redelivery callbacks."""

    id_factory: Callable[[], str] = field(default=_new_message_id)
    """Allocator for message ids. Collisions with live ids are retried."""

    _visible: deque[str] = field(default_factory=deque, repr=False, init=False)
    _visible_lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, init=False
    )
    _payloads: dict[str, bytes] = field(default_factory=dict, repr=False, init=False)
    _payloads_lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, init=False
    )
    _leases: dict[str, _Lease] = field(default_factory=dict, repr=False, init=False)
    _leases_lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, init=False
    )
    _logger: StructuredLogger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = get_logger(
            __name__, context={"component": "queue", "name": self.name}
        )

    def send_message(self, payload: bytes) -> None:
        """Append ``payload`` to the tail of the queue."""
        if not isinstance(payload, bytes):
            msg = f"Message payloads must be bytes, got {type(payload).__name__}"
            raise TypeError(msg)

        with self._visible_lock, self._payloads_lock:
            message_id = self._allocate_id()
            self._payloads[message_id] = payload
            self._visible.append(message_id)

    def receive_message(
        self, visibility_timeout: float | timedelta = 0
    ) -> ReceivedMessage:
        """Take the message at the head of the queue.

        Ids left behind by messages deleted after their redelivery are
        discarded on the way.

        Raises:
            NoMessagesError: No visible message remains.
        """
        seconds = to_seconds(visibility_timeout)

        with self._visible_lock, self._payloads_lock:
            while self._visible:
                message_id = self._visible.popleft()
                payload = self._payloads.get(message_id)
                if payload is not None:
                    break
                self._logger.debug(
                    "Skipped id of a deleted message.",
                    event="queue.tombstone_skipped",
                    context={"message_id": message_id},
                )
            else:
                raise NoMessagesError(f"No messages in queue '{self.name}'")

            if seconds <= 0:
                del self._payloads[message_id]
                return ReceivedMessage(id="", payload=payload)

            with self._leases_lock:
                lease = _Lease(message_id)
                try:
                    lease.handle = self.scheduler.call_later(
                        seconds, partial(self._redeliver, lease)
                    )
                except BaseException:
                    self._visible.appendleft(message_id)
                    raise
                self._leases[message_id] = lease

        return ReceivedMessage(id=message_id, payload=payload)

    def delete_message(self, id: str) -> None:
        """Acknowledge a received message.

        Cancels its pending redelivery and drops its payload. Unknown or
        already-deleted ids are ignored.
        """
        if not isinstance(id, str):
            msg = f"Message ids must be str, got {type(id).__name__}"
            raise TypeError(msg)
        if not id:
            return

        with self._payloads_lock:
            with self._leases_lock:
                lease = self._leases.pop(id, None)
                if lease is not None:
                    self._cancel_lease(lease)
            _ = self._payloads.pop(id, None)

    def approximate_count(self) -> int:
        """Return the number of live messages, visible and in flight.

        For LocalQueue this count is exact.
        """
        with self._payloads_lock:
            return len(self._payloads)

    def in_flight_count(self) -> int:
        """Return the number of messages waiting on a redelivery timer."""
        with self._leases_lock:
            return len(self._leases)

    def close(self) -> None:
        """Cancel every redelivery armed so far.

        Messages leased before the call stay live (and deletable) but are
        never returned to the queue. The queue remains usable: a later
        ``receive_message`` with a positive timeout arms a new lease that
        redelivers as usual.
        """
        with self._leases_lock:
            leases = list(self._leases.values())
            self._leases.clear()
            for lease in leases:
                self._cancel_lease(lease)

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def _allocate_id(self) -> str:
        # Caller holds _visible_lock and _payloads_lock.
        while True:
            message_id = self.id_factory()
            if message_id and message_id not in self._payloads and (
                message_id not in self._visible
            ):
                return message_id
            self._logger.debug(
                "Message id collided with a live id; retrying.",
                event="queue.id_collision",
                context={"message_id": message_id},
            )

    def _cancel_lease(self, lease: _Lease) -> None:
        # Caller holds _leases_lock.
        if lease.handle is not None and not lease.handle.cancel():
            self._logger.debug(
                "Redelivery already fired; its callback will find no lease.",
                event="queue.lease_race",
                context={"message_id": lease.message_id},
            )

    def _redeliver(self, lease: _Lease) -> None:
        message_id = lease.message_id
        with self._visible_lock, self._payloads_lock, self._leases_lock:
            if self._leases.get(message_id) is not lease:
                return
            del self._leases[message_id]
            if message_id not in self._payloads:
                return
            self._visible.appendleft(message_id)
        self._logger.debug(
            "Message visibility timed out; returned to the head of the queue.",
            event="queue.redelivered",
            context={"message_id": message_id},
        )


__all__ = ["LocalQueue"]
