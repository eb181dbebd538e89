"""Virtual clock package.

A simulated-time engine: a clock whose time advances at a configurable
rate relative to the wall clock, can be paused, bounded and looped, and
can fire callbacks when it reaches given virtual instants.
"""

from virtual_clock.clock import ClockSnapshot, VirtualClock
from virtual_clock.config import ClockConfig
from virtual_clock.events import ClockEvent, EventEmitter
from virtual_clock.exceptions import (
    ClockRangeError,
    EventListenerNotFoundError,
    UnknownEventError,
    VirtualClockError,
)
from virtual_clock.scheduler import ListenerScheduler, TimeListener
from virtual_clock.time_model import TimeModel
from virtual_clock.timers import (
    AsyncioTimerBackend,
    ManualTimeSource,
    ManualTimerBackend,
    MonotonicTimeSource,
    TimerBackend,
    TimerHandle,
    TimeSource,
)

__all__ = [
    "VirtualClock",
    "ClockSnapshot",
    "ClockConfig",
    "ClockEvent",
    "EventEmitter",
    "TimeModel",
    "ListenerScheduler",
    "TimeListener",
    "VirtualClockError",
    "ClockRangeError",
    "EventListenerNotFoundError",
    "UnknownEventError",
    "TimeSource",
    "TimerBackend",
    "TimerHandle",
    "MonotonicTimeSource",
    "ManualTimeSource",
    "AsyncioTimerBackend",
    "ManualTimerBackend",
]
