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

from __future__ import annotations

from collections.abc import Iterator

import pytest

from ephemera.cache import LocalCache
from ephemera.queue import LocalQueue
from ephemera.timers import FakeTimerScheduler


@pytest.fixture
def scheduler() -> FakeTimerScheduler:
    """Return a timer scheduler that only fires when advanced."""

    return FakeTimerScheduler()


@pytest.fixture
def cache(scheduler: FakeTimerScheduler) -> Iterator[LocalCache]:
    """Return a cache whose expiries are driven by ``scheduler``."""

    local = LocalCache(name="test", scheduler=scheduler)
    yield local
    local.close()


@pytest.fixture
def queue(scheduler: FakeTimerScheduler) -> Iterator[LocalQueue]:
    """Return a queue whose redeliveries are driven by ``scheduler``."""

    local = LocalQueue(name="test", scheduler=scheduler)
    yield local
    local.close()
