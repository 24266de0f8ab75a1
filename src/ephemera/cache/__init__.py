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

"""Key-value cache with per-entry expiry.

:class:`Cache` is the backend-neutral contract; :class:`LocalCache` keeps
entries in process memory and expires them with timers from
:mod:`ephemera.timers`.

Example::

    from ephemera.cache import Cache, LocalCache

    cache: Cache = LocalCache()
    cache.set("foo", b"bar", ttl=0.1)
    cache.get("foo")  # b"bar", then None after 100 ms
"""

from __future__ import annotations

from ._local import LocalCache
from ._protocols import Cache

__all__ = ["Cache", "LocalCache"]
