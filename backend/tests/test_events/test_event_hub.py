"""Tests for EventHub — callbacks, filtered subscriptions, queues, history."""

import asyncio
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))
os.environ.setdefault("ANTHROPIC_API_KEY", "test")

from app.events.hub import EventHub


def test_publish_builds_event():
    hub = EventHub(history_size=10)
    event = hub.publish("task.failed", task_id="t1", role="cfo", error="timeout")
    assert event.event_type == "task.failed"
    assert event.task_id == "t1"
    assert event.role == "cfo"
    assert event.payload == {"error": "timeout"}
    print("  PASS: publish_builds_event")


def test_subscribers_filtered_by_type():
    hub = EventHub(history_size=10)
    everything, failures = [], []
    hub.subscribe(everything.append)
    hub.subscribe(failures.append, event_types=["task.failed"])

    hub.publish("task.queued", task_id="a")
    hub.publish("task.failed", task_id="b")

    assert [e.task_id for e in everything] == ["a", "b"]
    assert [e.task_id for e in failures] == ["b"]
    assert hub.subscriber_count == 2
    print("  PASS: subscribers_filtered_by_type")


def test_failing_handler_does_not_interrupt_publisher():
    hub = EventHub(history_size=10)
    received = []

    def broken(event):
        raise RuntimeError("observer bug")

    hub.subscribe(broken)
    hub.subscribe(received.append)
    hub.publish("task.completed", task_id="x")
    assert len(received) == 1
    print("  PASS: failing_handler_does_not_interrupt_publisher")


def test_unsubscribe():
    hub = EventHub(history_size=10)
    received = []
    hub.subscribe(received.append)
    hub.unsubscribe(received.append)
    hub.publish("task.completed")
    assert received == []
    print("  PASS: unsubscribe")


def test_queue_subscriber_receives_and_full_queue_dropped():
    async def scenario():
        hub = EventHub(history_size=10)
        queue = hub.subscribe_queue(maxsize=1)
        hub.publish("task.queued", task_id="first")
        assert (await queue.get()).task_id == "first"

        hub.publish("task.queued", task_id="fills")
        hub.publish("task.queued", task_id="overflows")
        return hub, queue

    hub, queue = asyncio.run(scenario())
    assert hub.subscriber_count == 0
    assert queue.get_nowait().task_id == "fills"
    print("  PASS: queue_subscriber_receives_and_full_queue_dropped")


def test_queue_capacity_evicts_oldest():
    hub = EventHub(history_size=10)
    queues = [hub.subscribe_queue() for _ in range(EventHub.MAX_SUBSCRIBERS)]
    hub.subscribe_queue()
    assert hub.subscriber_count == EventHub.MAX_SUBSCRIBERS
    assert queues[0].get_nowait() is None
    hub.unsubscribe_queue(queues[1])
    assert hub.subscriber_count == EventHub.MAX_SUBSCRIBERS - 1
    print("  PASS: queue_capacity_evicts_oldest")


def test_history_bounded_and_filtered():
    hub = EventHub(history_size=3)
    for i in range(5):
        hub.publish("task.queued" if i % 2 == 0 else "task.completed", task_id=f"t{i}")
    assert [e.task_id for e in hub.history()] == ["t2", "t3", "t4"]
    assert [e.task_id for e in hub.history(event_type="task.queued")] == ["t2", "t4"]
    assert [e.task_id for e in hub.history(limit=1)] == ["t4"]
    print("  PASS: history_bounded_and_filtered")
