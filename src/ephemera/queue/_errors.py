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

"""Queue errors."""

from __future__ import annotations

from ..errors import EphemeraError


class QueueError(EphemeraError):
    """Base class for queue-related errors."""


class NoMessagesError(QueueError, LookupError):
    """No message is waiting to be received.

    Raised by ``receive_message`` when the visible sequence is empty, or
    holds only ids of messages deleted after their redelivery.
    """

    def __init__(self, message: str = "No messages in queue") -> None:
        super().__init__(message)


__all__ = ["NoMessagesError", "QueueError"]
