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

"""Cache protocol shared by every backend."""

from __future__ import annotations

from datetime import timedelta
from typing import Protocol, runtime_checkable


@runtime_checkable
class Cache(Protocol):
    """Minimum contract of a key-value cache with per-key expiry.

    All methods must be safe for concurrent access. Backends never raise for
    absent keys: ``get`` returns None and ``delete`` is a no-op.
    """

    def set(self, key: str, value: bytes, ttl: float | timedelta = 0) -> None:
        """Store ``value`` under ``key``.

        A ``ttl`` of 0 (or less) means the key never expires. A positive
        ``ttl`` deletes the key once it elapses; any expiry set previously on
        the key is replaced.
        """
        ...

    def get(self, key: str) -> bytes | None:
        """Return the value stored under ``key``, or None when absent."""
        ...

    def delete(self, key: str) -> None:
        """Remove ``key`` and its expiry. Absent keys are ignored."""
        ...


__all__ = ["Cache"]
