"""Exception hierarchy for the virtual clock.

Exception Hierarchy:
    VirtualClockError (base)
    ├── ClockRangeError - Invalid bound, rate or time value (also a ValueError)
    ├── UnknownEventError - Event name outside the supported set (also a ValueError)
    └── EventListenerNotFoundError - off() for a listener never attached (also a LookupError)

Removing a time listener that was never registered is deliberately NOT an
error; ``VirtualClock.remove_at()`` is a silent no-op in that case.

Example:
    Catching a rejected bound::

        try:
            clock.minimum = 20
        except ClockRangeError as e:
            print(f"Rejected: {e.message}")
"""


class VirtualClockError(Exception):
    """Base exception for all virtual clock errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
        """
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation of the error."""
        return self.message


class ClockRangeError(VirtualClockError, ValueError):
    """A bound, rate or time value was rejected.

    Raised before any state is mutated, so the clock keeps its prior
    valid configuration.

    Attributes:
        message: Human-readable error description.
        field: Name of the rejected setting (e.g. "minimum").
        value: The rejected value.
    """

    def __init__(self, message: str, field: str, value: float) -> None:
        self.field = field
        self.value = value
        super().__init__(message)


class UnknownEventError(VirtualClockError, ValueError):
    """An event name is not one of the supported clock events.

    Attributes:
        message: Human-readable error description.
        event: The name that was requested.
    """

    def __init__(self, event: str) -> None:
        self.event = event
        super().__init__(f"Unknown clock event '{event}'")


class EventListenerNotFoundError(VirtualClockError, LookupError):
    """Detaching an event listener that was never attached.

    Attributes:
        message: Human-readable error description.
        event: The event the listener was looked up under.
    """

    def __init__(self, event: str) -> None:
        self.event = event
        super().__init__(f"Event listener not found for '{event}'")
