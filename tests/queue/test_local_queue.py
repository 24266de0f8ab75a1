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

"""Tests for LocalQueue."""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import timedelta

import pytest

from ephemera.errors import EphemeraError
from ephemera.queue import (
    LocalQueue,
    NoMessagesError,
    Queue,
    QueueError,
    ReceivedMessage,
)
from ephemera.timers import FakeTimerScheduler, TimerHandle


@dataclass
class _FailingScheduler:
    """Wraps a fake scheduler and raises from ``call_later`` while ``failing``."""

    inner: FakeTimerScheduler
    failing: bool = False

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        if self.failing:
            raise RuntimeError("can't start new thread")
        return self.inner.call_later(delay, callback)


def _drain(queue: LocalQueue) -> list[bytes]:
    payloads: list[bytes] = []
    while True:
        try:
            payloads.append(queue.receive_message(0).payload)
        except NoMessagesError:
            return payloads


class TestNoMessagesError:
    def test_hierarchy(self) -> None:
        error = NoMessagesError()
        assert isinstance(error, QueueError)
        assert isinstance(error, EphemeraError)
        assert isinstance(error, LookupError)
        assert str(error) == "No messages in queue"


class TestLocalQueueSend:
    def test_satisfies_protocol(self, queue: LocalQueue) -> None:
        assert isinstance(queue, Queue)

    def test_appends_to_tail(self, queue: LocalQueue) -> None:
        for payload in (b"foo", b"bar", b"baz"):
            queue.send_message(payload)

        assert [queue._payloads[i] for i in queue._visible] == [b"foo", b"bar", b"baz"]
        assert queue.approximate_count() == 3

    def test_allocates_distinct_ids(self, queue: LocalQueue) -> None:
        for _ in range(100):
            queue.send_message(b"x")

        assert len(set(queue._visible)) == 100

    def test_retries_id_collisions(
        self, scheduler: FakeTimerScheduler, caplog: pytest.LogCaptureFixture
    ) -> None:
        ids: Iterator[str] = iter(["a", "a", "", "a", "b"])
        queue = LocalQueue(scheduler=scheduler, id_factory=lambda: next(ids))

        queue.send_message(b"first")
        with caplog.at_level(logging.DEBUG, logger="ephemera.queue._local"):
            queue.send_message(b"second")

        assert list(queue._visible) == ["a", "b"]
        assert [r.event for r in caplog.records] == ["queue.id_collision"] * 3

    def test_does_not_reuse_ids_of_in_flight_messages(
        self, scheduler: FakeTimerScheduler
    ) -> None:
        ids = itertools.chain(["a", "a"], (f"id-{n}" for n in itertools.count()))
        queue = LocalQueue(scheduler=scheduler, id_factory=lambda: next(ids))
        queue.send_message(b"first")
        message = queue.receive_message(10)

        queue.send_message(b"second")

        assert message.id == "a"
        assert list(queue._visible) == ["id-0"]

    def test_rejects_non_bytes_payload(self, queue: LocalQueue) -> None:
        with pytest.raises(TypeError, match="payloads must be bytes"):
            queue.send_message("foo")  # type: ignore[arg-type]

        assert queue.approximate_count() == 0


class TestLocalQueueReceive:
    def test_empty_queue_raises(self, queue: LocalQueue) -> None:
        with pytest.raises(NoMessagesError):
            _ = queue.receive_message(0)

    def test_zero_timeout_consumes_in_fifo_order(self, queue: LocalQueue) -> None:
        queue.send_message(b"foo")
        queue.send_message(b"bar")

        assert queue.receive_message(0) == ReceivedMessage(id="", payload=b"foo")
        assert queue.receive_message(0) == ReceivedMessage(id="", payload=b"bar")
        with pytest.raises(NoMessagesError):
            _ = queue.receive_message(0)
        assert queue.approximate_count() == 0

    def test_zero_timeout_is_never_redelivered(
        self, queue: LocalQueue, scheduler: FakeTimerScheduler
    ) -> None:
        queue.send_message(b"foo")
        _ = queue.receive_message(-1)

        assert scheduler.pending_count() == 0
        _ = scheduler.advance(3600)
        with pytest.raises(NoMessagesError):
            _ = queue.receive_message(0)

    def test_timeout_hides_message_and_returns_id(
        self, queue: LocalQueue, scheduler: FakeTimerScheduler
    ) -> None:
        queue.send_message(b"foo")
        queue.send_message(b"bar")

        message = queue.receive_message(0.1)

        assert message.payload == b"foo"
        assert message.id != ""
        assert message.id not in queue._visible
        assert message.id in queue._leases
        assert queue.in_flight_count() == 1
        assert queue.approximate_count() == 2
        assert scheduler.pending_count() == 1

    def test_timeout_redelivers_to_head(
        self, queue: LocalQueue, scheduler: FakeTimerScheduler
    ) -> None:
        queue.send_message(b"foo")
        queue.send_message(b"bar")
        first = queue.receive_message(1)

        _ = scheduler.advance(1)

        assert list(queue._visible)[0] == first.id
        assert queue.in_flight_count() == 0
        assert _drain(queue) == [b"foo", b"bar"]

    def test_redelivery_reuses_id(
        self, queue: LocalQueue, scheduler: FakeTimerScheduler
    ) -> None:
        queue.send_message(b"foo")
        first = queue.receive_message(1)
        _ = scheduler.advance(1)

        second = queue.receive_message(1)

        assert second == first

    def test_redelivers_exactly_once_per_lease(
        self, queue: LocalQueue, scheduler: FakeTimerScheduler
    ) -> None:
        queue.send_message(b"foo")
        message = queue.receive_message(1)

        assert scheduler.advance(100) == 1
        assert list(queue._visible) == [message.id]

    def test_accepts_timedelta(
        self, queue: LocalQueue, scheduler: FakeTimerScheduler
    ) -> None:
        queue.send_message(b"foo")
        _ = queue.receive_message(timedelta(seconds=30))

        _ = scheduler.advance(29)
        with pytest.raises(NoMessagesError):
            _ = queue.receive_message(0)
        _ = scheduler.advance(1)
        assert queue.receive_message(0).payload == b"foo"

    def test_redelivery_is_logged(
        self,
        queue: LocalQueue,
        scheduler: FakeTimerScheduler,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        queue.send_message(b"foo")
        message = queue.receive_message(1)

        with caplog.at_level(logging.DEBUG, logger="ephemera.queue._local"):
            _ = scheduler.advance(1)

        (record,) = caplog.records
        assert record.event == "queue.redelivered"
        assert record.context["message_id"] == message.id


    def test_scheduler_failure_keeps_message_at_head(
        self, scheduler: FakeTimerScheduler
    ) -> None:
        failing = _FailingScheduler(scheduler)
        queue = LocalQueue(scheduler=failing)
        queue.send_message(b"foo")
        queue.send_message(b"bar")

        failing.failing = True
        with pytest.raises(RuntimeError, match="thread"):
            _ = queue.receive_message(1)

        assert queue.in_flight_count() == 0
        assert queue.approximate_count() == 2
        assert _drain(queue) == [b"foo", b"bar"]

    def test_scheduler_failure_after_tombstone_sweep(
        self, scheduler: FakeTimerScheduler
    ) -> None:
        failing = _FailingScheduler(scheduler)
        queue = LocalQueue(scheduler=failing)
        queue.send_message(b"foo")
        queue.send_message(b"bar")
        deleted = queue.receive_message(1)
        _ = scheduler.advance(1)
        queue.delete_message(deleted.id)

        failing.failing = True
        with pytest.raises(RuntimeError):
            _ = queue.receive_message(1)
        failing.failing = False

        message = queue.receive_message(1)
        assert message.payload == b"bar"
        _ = scheduler.advance(1)
        assert _drain(queue) == [b"bar"]


class TestLocalQueueDelete:
    def test_before_timeout_prevents_redelivery(
        self, queue: LocalQueue, scheduler: FakeTimerScheduler
    ) -> None:
        queue.send_message(b"foo")
        message = queue.receive_message(0.1)

        queue.delete_message(message.id)

        assert queue.in_flight_count() == 0
        assert queue.approximate_count() == 0
        assert scheduler.pending_count() == 0
        _ = scheduler.advance(0.15)
        with pytest.raises(NoMessagesError):
            _ = queue.receive_message(0)

    def test_after_timeout_is_swept_at_receive(
        self,
        queue: LocalQueue,
        scheduler: FakeTimerScheduler,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        queue.send_message(b"foo")
        queue.send_message(b"bar")
        message = queue.receive_message(1)
        _ = scheduler.advance(1)

        queue.delete_message(message.id)

        with caplog.at_level(logging.DEBUG, logger="ephemera.queue._local"):
            assert queue.receive_message(0).payload == b"bar"
        assert [r.event for r in caplog.records] == ["queue.tombstone_skipped"]
        with pytest.raises(NoMessagesError):
            _ = queue.receive_message(0)

    def test_after_timeout_with_only_dangling_ids_raises(
        self, queue: LocalQueue, scheduler: FakeTimerScheduler
    ) -> None:
        queue.send_message(b"foo")
        message = queue.receive_message(1)
        _ = scheduler.advance(1)

        queue.delete_message(message.id)

        with pytest.raises(NoMessagesError):
            _ = queue.receive_message(0)
        assert len(queue._visible) == 0

    def test_racing_a_fired_lease_never_resurrects(
        self,
        queue: LocalQueue,
        scheduler: FakeTimerScheduler,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        queue.send_message(b"foo")
        message = queue.receive_message(1)
        fired = scheduler.claim_next()
        assert fired is not None

        with caplog.at_level(logging.DEBUG, logger="ephemera.queue._local"):
            queue.delete_message(message.id)
            fired.run()

        assert [r.event for r in caplog.records] == ["queue.lease_race"]
        assert len(queue._visible) == 0
        with pytest.raises(NoMessagesError):
            _ = queue.receive_message(0)

    def test_stale_lease_does_not_touch_new_lease(
        self, queue: LocalQueue, scheduler: FakeTimerScheduler
    ) -> None:
        queue.send_message(b"foo")
        first = queue.receive_message(1)
        stale = scheduler.claim_next()
        assert stale is not None
        stale.run()

        second = queue.receive_message(5)
        stale.run()

        assert second.id == first.id
        assert len(queue._visible) == 0
        assert queue.in_flight_count() == 1

    def test_unknown_and_repeated_ids_are_ignored(self, queue: LocalQueue) -> None:
        queue.send_message(b"foo")
        message = queue.receive_message(1)

        queue.delete_message("unknown")
        queue.delete_message("")
        queue.delete_message(message.id)
        queue.delete_message(message.id)

        assert queue.approximate_count() == 0

    def test_rejects_non_str_id(self, queue: LocalQueue) -> None:
        with pytest.raises(TypeError, match="ids must be str"):
            queue.delete_message(None)  # type: ignore[arg-type]


class TestLocalQueueLifecycle:
    def test_close_cancels_redeliveries(self, scheduler: FakeTimerScheduler) -> None:
        with LocalQueue(scheduler=scheduler) as queue:
            queue.send_message(b"foo")
            message = queue.receive_message(1)

        assert scheduler.pending_count() == 0
        _ = scheduler.advance(2)
        with pytest.raises(NoMessagesError):
            _ = queue.receive_message(0)
        assert queue.approximate_count() == 1
        queue.delete_message(message.id)
        assert queue.approximate_count() == 0

    def test_leases_armed_after_close_redeliver(
        self, scheduler: FakeTimerScheduler
    ) -> None:
        queue = LocalQueue(scheduler=scheduler)
        queue.send_message(b"foo")
        queue.send_message(b"bar")
        before = queue.receive_message(1)

        queue.close()
        after = queue.receive_message(1)

        assert queue.in_flight_count() == 1
        assert scheduler.advance(1) == 1
        received = queue.receive_message(0)
        assert received.payload == b"bar"
        assert after.payload == b"bar"
        with pytest.raises(NoMessagesError):
            _ = queue.receive_message(0)
        queue.delete_message(before.id)
        assert queue.approximate_count() == 0

    def test_instances_are_independent(self, scheduler: FakeTimerScheduler) -> None:
        first = LocalQueue(name="first", scheduler=scheduler)
        second = LocalQueue(name="second", scheduler=scheduler)

        first.send_message(b"one")

        with pytest.raises(NoMessagesError, match="second"):
            _ = second.receive_message(0)
        assert first.receive_message(0).payload == b"one"


class TestLocalQueueConcurrency:
    def test_concurrent_send_and_receive_deliver_each_message_once(
        self, queue: LocalQueue
    ) -> None:
        per_sender = 250
        senders = 4

        def send(index: int) -> None:
            for n in range(per_sender):
                queue.send_message(f"{index}:{n}".encode())

        with ThreadPoolExecutor(max_workers=senders) as executor:
            for future in [executor.submit(send, i) for i in range(senders)]:
                future.result()

        def receive() -> list[bytes]:
            received: list[bytes] = []
            while True:
                try:
                    message = queue.receive_message(30)
                except NoMessagesError:
                    return received
                received.append(message.payload)
                queue.delete_message(message.id)

        with ThreadPoolExecutor(max_workers=4) as executor:
            results = [executor.submit(receive) for _ in range(4)]
            received = [p for future in results for p in future.result()]

        assert len(received) == per_sender * senders
        assert len(set(received)) == per_sender * senders
        assert queue.approximate_count() == 0
        assert queue.in_flight_count() == 0

    def test_sender_order_is_preserved(self, queue: LocalQueue) -> None:
        def send(index: int) -> None:
            for n in range(100):
                queue.send_message(f"{index}:{n:03d}".encode())

        with ThreadPoolExecutor(max_workers=3) as executor:
            for future in [executor.submit(send, i) for i in range(3)]:
                future.result()

        payloads = _drain(queue)
        for index in range(3):
            mine = [p for p in payloads if p.startswith(f"{index}:".encode())]
            assert mine == sorted(mine)
            assert len(mine) == 100
