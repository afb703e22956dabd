import logging

import pytest

from serialterm.events import ConsoleEvent, EventChannel


def test_subscribers_receive_events_in_registration_order() -> None:
    channel = EventChannel()
    seen: list[tuple[str, ConsoleEvent, object]] = []
    channel.subscribe(lambda event, payload: seen.append(("first", event, payload)))
    channel.subscribe(lambda event, payload: seen.append(("second", event, payload)))

    channel.publish(ConsoleEvent.DATA_SENT, b"x")

    assert seen == [
        ("first", ConsoleEvent.DATA_SENT, b"x"),
        ("second", ConsoleEvent.DATA_SENT, b"x"),
    ]


def test_subscription_filters_by_event() -> None:
    channel = EventChannel()
    seen: list[ConsoleEvent] = []
    channel.subscribe(lambda event, payload: seen.append(event), ConsoleEvent.ECHO_CHANGED)

    channel.publish(ConsoleEvent.DISPLAY_CHANGED)
    channel.publish(ConsoleEvent.ECHO_CHANGED, True)

    assert seen == [ConsoleEvent.ECHO_CHANGED]


def test_unsubscribe_stops_delivery() -> None:
    channel = EventChannel()
    seen: list[ConsoleEvent] = []
    unsubscribe = channel.subscribe(lambda event, payload: seen.append(event))

    unsubscribe()
    unsubscribe()
    channel.publish(ConsoleEvent.DISPLAY_CHANGED)

    assert seen == []
    assert len(channel) == 0


def test_failing_subscriber_is_logged_and_does_not_block_others(
    caplog: pytest.LogCaptureFixture,
) -> None:
    channel = EventChannel()
    seen: list[ConsoleEvent] = []

    def _broken(event: ConsoleEvent, payload: object) -> None:
        raise RuntimeError("boom")

    channel.subscribe(_broken)
    channel.subscribe(lambda event, payload: seen.append(event))

    with caplog.at_level(logging.WARNING, logger="serialterm.events"):
        channel.publish(ConsoleEvent.DATA_RECEIVED, b"")

    assert seen == [ConsoleEvent.DATA_RECEIVED]
    assert "DATA_RECEIVED" in caplog.text
