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

"""Base exception hierarchy for :mod:`ephemera`."""

from __future__ import annotations


class EphemeraError(Exception):
    """Base class for all ephemera exceptions.

    Catching this class handles every library-specific failure while letting
    standard Python exceptions (``TypeError`` for misuse and the like)
    propagate normally.

    Example:
        Draining a queue until it is empty::

            try:
                message = queue.receive_message(visibility_timeout=30)
            except EphemeraError as e:
                logger.info("Nothing to do: %s", e)

    Note:
        Subclasses may also inherit from standard exception types (e.g.,
        ``LookupError``) to enable more specific handling when needed.
    """


__all__ = ["EphemeraError"]
