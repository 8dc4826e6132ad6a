"""Unit tests for src/realtime/feed.py"""

import logging
from uuid import uuid4

import pytest

from src.core.models import ChangeEvent
from src.core.shared_types import ChangeType, SubscriptionStatus
from src.realtime.feed import ChangeFeed


def test_subscription_starts_subscribed(feed: ChangeFeed) -> None:
    statuses: list[SubscriptionStatus] = []
    subscription = feed.subscribe("rooms", on_status=statuses.append)
    assert subscription.status == SubscriptionStatus.SUBSCRIBED
    assert statuses == [SubscriptionStatus.SUBSCRIBED]
    assert feed.subscription_count == 1


def test_events_are_routed_by_table_and_type(feed: ChangeFeed) -> None:
    inserts: list[ChangeEvent] = []
    updates: list[ChangeEvent] = []
    feed.subscribe("chat_messages", on_insert=inserts.append, on_update=updates.append)

    feed.publish("chat_messages", ChangeType.INSERT, new={"id": 1})
    feed.publish("rooms", ChangeType.INSERT, new={"id": 2})
    feed.publish("chat_messages", ChangeType.UPDATE, new={"id": 1}, old={"id": 1})
    # no delete handler: ignored
    feed.publish("chat_messages", ChangeType.DELETE, old={"id": 1})

    assert [event.new["id"] for event in inserts] == [1]
    assert [event.type for event in updates] == [ChangeType.UPDATE]


def test_filters(feed: ChangeFeed) -> None:
    room_id, other_room = uuid4(), uuid4()
    events: list[ChangeEvent] = []
    feed.subscribe(
        "room_participants",
        {"room_id": room_id},
        on_insert=events.append,
        on_delete=events.append,
    )

    feed.publish("room_participants", ChangeType.INSERT, new={"room_id": other_room})
    feed.publish("room_participants", ChangeType.INSERT, new={"room_id": room_id})
    # deletes are matched on the old row
    feed.publish("room_participants", ChangeType.DELETE, old={"room_id": room_id})

    assert [event.type for event in events] == [ChangeType.INSERT, ChangeType.DELETE]


def test_event_ids_increase(feed: ChangeFeed) -> None:
    first = feed.publish("rooms", ChangeType.INSERT, new={})
    second = feed.publish("rooms", ChangeType.INSERT, new={})
    assert second.event_id > first.event_id


def test_unsubscribe(feed: ChangeFeed) -> None:
    events: list[ChangeEvent] = []
    statuses: list[SubscriptionStatus] = []
    subscription = feed.subscribe("rooms", on_insert=events.append, on_status=statuses.append)
    feed.unsubscribe(subscription)
    feed.unsubscribe(subscription)

    feed.publish("rooms", ChangeType.INSERT, new={"id": 1})
    assert events == []
    assert subscription.status == SubscriptionStatus.CLOSED
    # releasing is silent
    assert statuses == [SubscriptionStatus.SUBSCRIBED]
    assert feed.subscription_count == 0


def test_failing_handler_does_not_stop_delivery(
    feed: ChangeFeed, caplog: pytest.LogCaptureFixture
) -> None:
    events: list[ChangeEvent] = []

    def broken(event: ChangeEvent) -> None:
        raise RuntimeError("boom")

    feed.subscribe("rooms", on_insert=broken)
    feed.subscribe("rooms", on_insert=events.append)

    with caplog.at_level(logging.ERROR, logger="src.realtime.feed"):
        feed.publish("rooms", ChangeType.INSERT, new={"id": 1})

    assert len(events) == 1
    assert "Change handler failed" in caplog.text


def test_handler_may_unsubscribe_others(feed: ChangeFeed) -> None:
    events: list[ChangeEvent] = []
    later = None

    def drop_later(event: ChangeEvent) -> None:
        feed.unsubscribe(later)

    feed.subscribe("rooms", on_insert=drop_later)
    later = feed.subscribe("rooms", on_insert=events.append)
    feed.publish("rooms", ChangeType.INSERT, new={"id": 1})
    assert events == []


def test_interrupt_reports_errors(feed: ChangeFeed) -> None:
    statuses: list[SubscriptionStatus] = []
    events: list[ChangeEvent] = []
    feed.subscribe("rooms", on_insert=events.append, on_status=statuses.append)
    feed.subscribe("chat_messages", on_status=statuses.append)

    feed.interrupt()
    feed.publish("rooms", ChangeType.INSERT, new={"id": 1})

    assert statuses[-2:] == [SubscriptionStatus.CHANNEL_ERROR] * 2
    assert events == []
    assert feed.subscription_count == 0

    feed.subscribe("rooms", on_status=statuses.append)
    feed.interrupt(SubscriptionStatus.TIMED_OUT)
    assert statuses[-1] == SubscriptionStatus.TIMED_OUT
