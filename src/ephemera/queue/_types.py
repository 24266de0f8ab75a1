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

"""Queue protocol and received-message type."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class ReceivedMessage:
    """A message handed out by ``receive_message``."""

    id: str
    """Handle for ``delete_message``. Empty when the message was received
    without a visibility timeout and is already consumed."""

    payload: bytes
    """Opaque message body."""


@runtime_checkable
class Queue(Protocol):
    """Minimum contract of a queue with visibility timeouts.

    All methods must be safe for concurrent access.
    """

    def send_message(self, payload: bytes) -> None:
        """Append ``payload`` to the tail of the queue."""
        ...

    def receive_message(
        self, visibility_timeout: float | timedelta = 0
    ) -> ReceivedMessage:
        """Take the message at the head of the queue.

        A ``visibility_timeout`` of 0 (or less) consumes the message: the
        returned id is empty and the message is gone. A positive timeout
        hides the message and returns it to the head of the queue once the
        timeout elapses, unless ``delete_message`` is called with the
        returned id first.

        Raises:
            NoMessagesError: The queue has no visible messages.
        """
        ...

    def delete_message(self, id: str) -> None:
        """Acknowledge a received message. Unknown ids are ignored."""
        ...


__all__ = ["Queue", "ReceivedMessage"]
