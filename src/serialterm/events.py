"""Observer channel through which the console notifies its collaborators."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, Iterable

logger = logging.getLogger(__name__)


class ConsoleEvent(Enum):
    """Kinds of notification raised by :class:`ConsoleController`."""

    DISPLAY_CHANGED = auto()
    DATA_RECEIVED = auto()
    DATA_SENT = auto()
    HISTORY_ITEM_CHANGED = auto()
    DATA_MODE_CHANGED = auto()
    DISPLAY_MODE_CHANGED = auto()
    LINE_ENDING_CHANGED = auto()
    ECHO_CHANGED = auto()
    AUTOSCROLL_CHANGED = auto()
    SHOW_TIMESTAMP_CHANGED = auto()
    VT100_CHANGED = auto()


Subscriber = Callable[[ConsoleEvent, Any], None]


@dataclass(frozen=True, slots=True, eq=False)
class _Subscription:
    callback: Subscriber
    events: frozenset[ConsoleEvent]

    def accepts(self, event: ConsoleEvent) -> bool:
        return not self.events or event in self.events


class EventChannel:
    """Fan notifications out to registered subscribers in registration order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: list[_Subscription] = []

    def subscribe(
        self, callback: Subscriber, *events: ConsoleEvent
    ) -> Callable[[], None]:
        """Register ``callback`` for ``events`` (all events when none given).

        Returns a callable that removes the subscription.
        """

        subscription = _Subscription(callback, frozenset(events))
        with self._lock:
            self._subscriptions.append(subscription)

        def _unsubscribe() -> None:
            with self._lock:
                if subscription in self._subscriptions:
                    self._subscriptions.remove(subscription)

        return _unsubscribe

    def publish(self, event: ConsoleEvent, payload: Any = None) -> None:
        with self._lock:
            targets: Iterable[_Subscription] = tuple(self._subscriptions)
        for subscription in targets:
            if not subscription.accepts(event):
                continue
            try:
                subscription.callback(event, payload)
            except Exception:
                logger.warning(
                    "subscriber %r failed while handling %s",
                    subscription.callback,
                    event.name,
                    exc_info=True,
                )

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)


__all__ = ["ConsoleEvent", "EventChannel", "Subscriber"]
