"""Clock event names and the event emitter."""

from enum import Enum
from typing import Any, Callable, Union

from virtual_clock.exceptions import EventListenerNotFoundError, UnknownEventError

EventCallback = Callable[..., Any]


class ClockEvent(str, Enum):
    """Events announced by the clock after a state change is applied."""

    START = "start"
    STOP = "stop"
    SET_TIME = "settime"
    SET_RUNNING = "setrunning"
    SET_RATE = "setrate"
    SET_MINIMUM = "setminimum"
    SET_MAXIMUM = "setmaximum"
    SET_LOOP = "setloop"

    @classmethod
    def coerce(cls, event: Union["ClockEvent", str]) -> "ClockEvent":
        """Resolve an event given by member or by name.

        Args:
            event: A ClockEvent or its string value (e.g. "settime").

        Returns:
            The matching ClockEvent.

        Raises:
            UnknownEventError: If the name is not a supported event.
        """
        if isinstance(event, cls):
            return event
        try:
            return cls(event)
        except ValueError:
            raise UnknownEventError(str(event)) from None


class EventEmitter:
    """Synchronous in-process pub/sub keyed by ClockEvent.

    Listeners are invoked in attachment order. Dispatch iterates over a
    snapshot, so a listener may attach or detach listeners (including
    itself) while an event is being triggered.
    """

    def __init__(self) -> None:
        self._listeners: dict[ClockEvent, list[EventCallback]] = {
            event: [] for event in ClockEvent
        }

    def on(self, event: Union[ClockEvent, str], callback: EventCallback) -> None:
        """Attach a listener for an event."""
        self._listeners[ClockEvent.coerce(event)].append(callback)

    def off(self, event: Union[ClockEvent, str], callback: EventCallback) -> None:
        """Detach the first matching listener for an event.

        Raises:
            EventListenerNotFoundError: If the callback is not attached.
        """
        kind = ClockEvent.coerce(event)
        listeners = self._listeners[kind]
        try:
            listeners.remove(callback)
        except ValueError:
            raise EventListenerNotFoundError(kind.value) from None

    def trigger(self, event: Union[ClockEvent, str], *args: Any) -> int:
        """Invoke every listener attached to an event.

        Args:
            event: The event to trigger.
            *args: Positional arguments passed to each listener.

        Returns:
            Number of listeners invoked.
        """
        kind = ClockEvent.coerce(event)
        listeners = tuple(self._listeners[kind])
        for listener in listeners:
            listener(*args)
        return len(listeners)

    def listener_count(self, event: Union[ClockEvent, str]) -> int:
        """Number of listeners attached to an event."""
        return len(self._listeners[ClockEvent.coerce(event)])
