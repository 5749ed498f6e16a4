"""
Unit tests for the NotificationAggregator
Covers ordering, idempotent removal and the auto-dismiss timer contract
"""

import threading
import time

import pytest
from pydantic import ValidationError

from insight_runner.models.notification import NotificationAction
from insight_runner.notifications.aggregator import NotificationAggregator


@pytest.fixture
def aggregator():
    aggregator = NotificationAggregator()
    yield aggregator
    aggregator.close()


def _wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_add_assigns_unique_ids_and_keeps_insertion_order(aggregator):
    first = aggregator.add("info", "One", "first")
    second = aggregator.add("success", "Two", "second")
    third = aggregator.add("error", "Three", "third")

    listed = aggregator.list()

    assert len({first, second, third}) == 3
    assert [n.notification_id for n in listed] == [first, second, third]
    assert [n.severity for n in listed] == ["info", "success", "error"]
    assert all(n.created_at.tzinfo is not None for n in listed)


def test_invalid_severity_rejected(aggregator):
    with pytest.raises(ValidationError):
        aggregator.add("fatal", "Bad", "severity")
    assert aggregator.list() == []


def test_list_is_a_snapshot(aggregator):
    aggregator.add("info", "One", "first")

    snapshot = aggregator.list()
    snapshot.clear()

    assert len(aggregator.list()) == 1


def test_remove_is_idempotent(aggregator):
    notification_id = aggregator.add("info", "One", "first")

    aggregator.remove(notification_id)
    aggregator.remove(notification_id)
    aggregator.remove("notif-does-not-exist")

    assert aggregator.list() == []


def test_clear_all(aggregator):
    aggregator.add("info", "One", "first", duration_ms=50)
    aggregator.add("warning", "Two", "second")

    aggregator.clear_all()
    aggregator.clear_all()

    assert aggregator.list() == []
    time.sleep(0.1)
    assert aggregator.list() == []


def test_notification_auto_dismisses_after_duration(aggregator):
    notification_id = aggregator.add("success", "Done", "run finished", duration_ms=100)
    assert aggregator.get(notification_id) is not None

    assert _wait_until(lambda: aggregator.get(notification_id) is None)


def test_zero_or_missing_duration_never_dismisses(aggregator):
    aggregator.add("info", "Sticky", "no duration")
    aggregator.add("info", "Sticky", "zero duration", duration_ms=0)

    time.sleep(0.15)

    assert len(aggregator.list()) == 2


def test_manual_removal_cancels_timer(aggregator):
    """Removing at 50ms means the 100ms timer has nothing left to do"""
    notification_id = aggregator.add("info", "Soon gone", "removed early", duration_ms=100)
    time.sleep(0.05)

    aggregator.remove(notification_id)
    later_id = aggregator.add("info", "Stays", "added after removal")
    time.sleep(0.15)

    assert [n.notification_id for n in aggregator.list()] == [later_id]


def test_expiry_only_removes_its_own_notification(aggregator):
    short_id = aggregator.add("info", "Short", "expires", duration_ms=50)
    long_id = aggregator.add("info", "Long", "stays")

    assert _wait_until(lambda: aggregator.get(short_id) is None)
    assert aggregator.get(long_id) is not None


def test_action_is_never_auto_invoked(aggregator):
    calls = []
    action = NotificationAction(label="View report", callback=lambda: calls.append(1))

    notification_id = aggregator.add("info", "Report", "ready", duration_ms=50, action=action)
    assert _wait_until(lambda: aggregator.get(notification_id) is None)

    assert calls == []
    assert aggregator.invoke_action(notification_id) is False


def test_invoke_action_runs_callback(aggregator):
    calls = []
    action = NotificationAction(label="Retry", callback=lambda: calls.append("retry"))
    notification_id = aggregator.add("error", "Failed", "retry?", action=action)

    assert aggregator.invoke_action(notification_id) is True
    assert calls == ["retry"]


def test_invoke_action_without_callback(aggregator):
    action = NotificationAction(label="Open", url="/dashboard/insights")
    with_url = aggregator.add("info", "Link", "open", action=action)
    plain = aggregator.add("info", "Plain", "no action")

    assert aggregator.invoke_action(with_url) is False
    assert aggregator.invoke_action(plain) is False


def test_concurrent_adds_and_removes(aggregator):
    added = []
    guard = threading.Lock()

    def producer():
        for i in range(50):
            notification_id = aggregator.add("info", "Load", str(i), duration_ms=20)
            with guard:
                added.append(notification_id)

    def remover():
        for _ in range(50):
            with guard:
                ids = list(added)
            for notification_id in ids:
                aggregator.remove(notification_id)

    threads = [threading.Thread(target=producer) for _ in range(4)]
    threads.append(threading.Thread(target=remover))
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(set(added)) == 200
    assert _wait_until(lambda: len(aggregator) == 0)


def test_closed_aggregator_rejects_adds():
    aggregator = NotificationAggregator()
    aggregator.add("info", "Pending", "timer", duration_ms=1000)

    aggregator.close()

    assert aggregator.list() == []
    with pytest.raises(RuntimeError):
        aggregator.add("info", "Late", "after close")


def test_context_manager_closes():
    with NotificationAggregator() as aggregator:
        aggregator.add("info", "Scoped", "session")
    assert aggregator.list() == []
