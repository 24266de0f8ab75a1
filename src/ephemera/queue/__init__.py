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

"""Message queue with visibility timeouts.

:class:`Queue` is the backend-neutral contract; :class:`LocalQueue` keeps
messages in process memory and redelivers them with timers from
:mod:`ephemera.timers`.

Lifecycle of a message::

    [absent] --send--> visible
    visible --receive(t > 0)--> in flight (hidden for t seconds)
    visible --receive(t <= 0)--> [absent]
    in flight --timeout--> visible, at the head of the queue
    in flight --delete--> [absent]

Example::

    from ephemera.queue import LocalQueue, NoMessagesError

    queue = LocalQueue()
    queue.send_message(b"job")
    message = queue.receive_message(visibility_timeout=30)
    queue.delete_message(message.id)
"""

from __future__ import annotations

from ._errors import NoMessagesError, QueueError
from ._local import LocalQueue
from ._types import Queue, ReceivedMessage

__all__ = [
    "LocalQueue",
    "NoMessagesError",
    "Queue",
    "QueueError",
    "ReceivedMessage",
]
