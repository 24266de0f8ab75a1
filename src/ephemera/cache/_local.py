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

"""Thread-safe in-memory cache implementation."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import timedelta
from functools import partial
from types import TracebackType
from typing import Self

from ..clock import to_seconds
from ..logging import StructuredLogger, get_logger
from ..timers import SYSTEM_TIMER_SCHEDULER, TimerHandle, TimerScheduler


@dataclass(slots=True, eq=False)
class _Expiry:
    """Expiry registration for one ``set`` call.

    The timer callback receives this object and acts only while it is still
    the registration stored for its key.
    """

    key: str
    handle: TimerHandle | None = None


@dataclass(slots=True)
class LocalCache:
    """Thread-safe in-memory cache with per-key expiry timers.

    Values live in memory and are lost on process exit. No guarantees are
    made about performance or efficiency.

    Characteristics:
    - Thread-safe via two locks (values, expiries)
    - One timer per key with a positive TTL
    - Overwriting a key replaces its expiry

    Example::

        cache: Cache = LocalCache(name="sessions")
        cache.set("token", b"abc", ttl=30)
        assert cache.get("token") == b"abc"
        cache.delete("token")
    """

    name: str = "default"
    """Cache name bound into log records."""

    scheduler: TimerScheduler = field(default=SYSTEM_TIMER_SCHEDULER)
    """Scheduler running expiry callbacks."""

    _values: dict[str, bytes] = field(default_factory=dict, repr=False, init=False)
    _values_lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, init=False
    )
    _expiries: dict[str, _Expiry] = field(
        default_factory=dict, repr=False, init=False
    )
    _expiries_lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, init=False
    )
    _logger: StructuredLogger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = get_logger(
            __name__, context={"component": "cache", "name": self.name}
        )

    def set(self, key: str, value: bytes, ttl: float | timedelta = 0) -> None:
        """Store ``value`` under ``key``, replacing any previous expiry.

        A ``ttl`` of 0 (or less) removes any expiry from the key.
        """
        _check_key(key)
        if not isinstance(value, bytes):
            msg = f"Cache values must be bytes, got {type(value).__name__}"
            raise TypeError(msg)
        seconds = to_seconds(ttl)

        with self._expiries_lock:
            # Arm first: a scheduler failure leaves the previous entry untouched.
            expiry: _Expiry | None = None
            if seconds > 0:
                expiry = _Expiry(key)
                expiry.handle = self.scheduler.call_later(
                    seconds, partial(self._expire, expiry)
                )
            self._cancel_expiry(key)
            with self._values_lock:
                self._values[key] = value
            if expiry is not None:
                self._expiries[key] = expiry

    def get(self, key: str) -> bytes | None:
        """Return the value for ``key``, or None when absent."""
        _check_key(key)
        with self._values_lock:
            return self._values.get(key)

    def delete(self, key: str) -> None:
        """Remove ``key`` and its expiry. Absent keys are ignored."""
        _check_key(key)
        with self._expiries_lock:
            self._cancel_expiry(key)
            with self._values_lock:
                _ = self._values.pop(key, None)

    def close(self) -> None:
        """Cancel every expiry armed so far.

        Stored values stay and no longer expire. The cache remains usable: a
        later ``set`` with a positive ttl arms a new expiry as usual.
        """
        with self._expiries_lock:
            for key in list(self._expiries):
                self._cancel_expiry(key)

    def __len__(self) -> int:
        with self._values_lock:
            return len(self._values)

    def __contains__(self, key: object) -> bool:
        with self._values_lock:
            return key in self._values

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def _cancel_expiry(self, key: str) -> None:
        # Caller holds _expiries_lock.
        expiry = self._expiries.pop(key, None)
        if expiry is None or expiry.handle is None:
            return
        if not expiry.handle.cancel():
            self._logger.debug(
                "Expiry already fired; its callback will find no registration.",
                event="cache.expiry_race",
                context={"key": key},
            )

    def _expire(self, expiry: _Expiry) -> None:
        with self._expiries_lock:
            if self._expiries.get(expiry.key) is not expiry:
                return
            del self._expiries[expiry.key]
            with self._values_lock:
                _ = self._values.pop(expiry.key, None)
        self._logger.debug(
            "Cache entry expired.",
            event="cache.expired",
            context={"key": expiry.key},
        )


def _check_key(key: object) -> None:
    if not isinstance(key, str):
        msg = f"Cache keys must be str, got {type(key).__name__}"
        raise TypeError(msg)


__all__ = ["LocalCache"]
